from typing import Any, Dict, Optional

import pytest
from fastapi.testclient import TestClient

from streambridge.config import AddonConfig, Settings
from streambridge.main import create_app, get_client

BASE_URL = "https://addon.example.com/token123"


class FakeResponse:
    """Risposta minimale con l'interfaccia di curl_cffi usata dal codice."""

    def __init__(self, status_code: int = 200, json_data: Any = None,
                 headers: Optional[Dict[str, str]] = None, reason: str = "OK"):
        self.status_code = status_code
        self.reason = reason
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}
        self._json = json_data

    def json(self):
        if isinstance(self._json, Exception):
            raise self._json
        return self._json


class FakeSession:
    """
    Sostituisce AsyncSession: `gets` e `heads` mappano URL -> FakeResponse o eccezione.
    Registra ogni chiamata in `calls`.
    """

    def __init__(self, gets=None, heads=None):
        self.gets = gets or {}
        self.heads = heads or {}
        self.calls = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def _respond(self, table, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        if url not in table:
            raise AssertionError(f"Unexpected {method} {url}")
        result = table[url]
        if isinstance(result, Exception):
            raise result
        return result

    async def get(self, url, **kwargs):
        return await self._respond(self.gets, "GET", url, kwargs)

    async def head(self, url, **kwargs):
        return await self._respond(self.heads, "HEAD", url, kwargs)

    def called(self, method):
        return [url for m, url, _ in self.calls if m == method]


@pytest.fixture
def settings():
    return Settings(manifest_url=f"{BASE_URL}/manifest.json", probe_timeout=5.0)


@pytest.fixture
def addon():
    return AddonConfig(
        manifest_url=f"{BASE_URL}/manifest.json",
        base_url=BASE_URL,
        manifest={"name": "Test Addon", "version": "1.2.3", "description": "Streams for tests"},
    )


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def make_client(settings, addon, session):
    def factory(configured: bool = True, app_settings: Settings = None):
        app = create_app(app_settings or settings, addon=addon if configured else None)
        app.dependency_overrides[get_client] = lambda: session
        return TestClient(app)
    return factory


@pytest.fixture
def client(make_client):
    return make_client()
