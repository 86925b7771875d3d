import pytest
from curl_cffi.requests import RequestsError

from streambridge.config import Settings, initialize_addon, resolve_base_url
from streambridge.errors import ManifestError
from tests.conftest import FakeResponse, FakeSession


@pytest.mark.parametrize("manifest_url, expected", [
    ("https://host/path/manifest.json", "https://host/path"),
    ("https://host/path/manifest.json/", "https://host/path"),
    ("https://host/manifest.json", "https://host"),
    ("  https://host/a/b/c/manifest.json  ", "https://host/a/b/c"),
    ("https://nuviostreams.hayd.uk/token123/manifest.json", "https://nuviostreams.hayd.uk/token123"),
])
def test_resolve_base_url_strips_manifest_suffix(manifest_url, expected):
    assert resolve_base_url(manifest_url) == expected


@pytest.mark.parametrize("manifest_url", [
    "https://host/path",
    "https://host/path/manifest.json//",
    "https://host/path/manifest.jsonx",
    "https://host/path/mymanifest.json",
    "https://host/path/manifest.json?token=1",
    "",
])
def test_resolve_base_url_rejects_other_urls(manifest_url):
    with pytest.raises(ManifestError):
        resolve_base_url(manifest_url)


def test_settings_defaults(monkeypatch):
    for key in ("MANIFEST_URL", "PORT", "HOST", "PROBE_TIMEOUT", "PROBE_STRATEGY", "PROBE_CONCURRENCY"):
        monkeypatch.delenv(key, raising=False)

    settings = Settings.from_env()

    assert settings.manifest_url is None
    assert settings.port == 3000
    assert settings.host == "0.0.0.0"
    assert settings.probe_timeout == 5.0
    assert settings.probe_strategy == "concurrent"


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("MANIFEST_URL", "https://host/manifest.json")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("PROBE_STRATEGY", "Sequential")
    monkeypatch.setenv("PROBE_TIMEOUT", "2.5")

    settings = Settings.from_env()

    assert settings.manifest_url == "https://host/manifest.json"
    assert settings.port == 8080
    assert settings.probe_strategy == "sequential"
    assert settings.probe_timeout == 2.5


def test_settings_fall_back_on_bad_values(monkeypatch):
    monkeypatch.setenv("PORT", "not-a-port")
    monkeypatch.setenv("PROBE_STRATEGY", "random")
    monkeypatch.setenv("PROBE_CONCURRENCY", "0")

    settings = Settings.from_env()

    assert settings.port == 3000
    assert settings.probe_strategy == "concurrent"
    assert settings.probe_concurrency == 1


@pytest.mark.asyncio
async def test_initialize_addon_reads_manifest():
    url = "https://host/path/manifest.json"
    session = FakeSession(gets={url: FakeResponse(json_data={"name": "Nuvio", "version": "0.5.0"})})

    addon = await initialize_addon(url, session)

    assert addon.base_url == "https://host/path"
    assert addon.name == "Nuvio"
    assert addon.version == "0.5.0"
    assert addon.description == "No description"


@pytest.mark.asyncio
async def test_initialize_addon_rejects_bad_url_without_fetching():
    session = FakeSession()

    with pytest.raises(ManifestError):
        await initialize_addon("https://host/path/config.json", session)

    assert session.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("result", [
    FakeResponse(status_code=404, reason="Not Found"),
    FakeResponse(json_data=ValueError("Expecting value")),
    FakeResponse(json_data=["not", "an", "object"]),
    RequestsError("Could not resolve host"),
])
async def test_initialize_addon_failures_raise_manifest_error(result):
    url = "https://host/manifest.json"
    session = FakeSession(gets={url: result})

    with pytest.raises(ManifestError):
        await initialize_addon(url, session)
