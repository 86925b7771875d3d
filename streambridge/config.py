import os
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from curl_cffi.requests import AsyncSession, RequestsError

from streambridge.errors import ManifestError

logger = logging.getLogger(__name__)

MANIFEST_SUFFIX = "/manifest.json"

PROBE_STRATEGIES = ("concurrent", "sequential")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env_int(key: str, default: int) -> int:
    try:
        return int(os.environ.get(key, default))
    except ValueError:
        logger.warning(f"Valore non valido per {key}, uso il default {default}")
        return default


def _env_float(key: str, default: float) -> float:
    try:
        return float(os.environ.get(key, default))
    except ValueError:
        logger.warning(f"Valore non valido per {key}, uso il default {default}")
        return default


@dataclass(frozen=True)
class Settings:
    manifest_url: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 3000
    probe_timeout: float = 5.0
    fetch_timeout: float = 15.0
    probe_strategy: str = "concurrent"
    probe_concurrency: int = 8
    impersonate: str = "chrome110"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Legge la configurazione dalle variabili d'ambiente (e dal file .env se presente)."""
        load_dotenv()

        strategy = os.environ.get("PROBE_STRATEGY", "concurrent").strip().lower()
        if strategy not in PROBE_STRATEGIES:
            logger.warning(f"PROBE_STRATEGY sconosciuta '{strategy}', uso 'concurrent'")
            strategy = "concurrent"

        log_level = os.environ.get("LOG_LEVEL", "INFO").strip().upper()
        if log_level not in LOG_LEVELS:
            logger.warning(f"LOG_LEVEL sconosciuto '{log_level}', uso INFO")
            log_level = "INFO"

        return cls(
            manifest_url=os.environ.get("MANIFEST_URL") or None,
            host=os.environ.get("HOST", "0.0.0.0"),
            port=_env_int("PORT", 3000),
            probe_timeout=_env_float("PROBE_TIMEOUT", 5.0),
            fetch_timeout=_env_float("FETCH_TIMEOUT", 15.0),
            probe_strategy=strategy,
            probe_concurrency=max(1, _env_int("PROBE_CONCURRENCY", 8)),
            impersonate=os.environ.get("IMPERSONATE", "chrome110"),
            log_level=log_level,
        )


@dataclass(frozen=True)
class AddonConfig:
    """Configurazione dell'addon risolta all'avvio. Non cambia più dopo lo startup."""
    manifest_url: str
    base_url: str
    manifest: Dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.manifest.get("name") or "Unknown"

    @property
    def version(self) -> str:
        return self.manifest.get("version") or "Unknown"

    @property
    def description(self) -> str:
        return self.manifest.get("description") or "No description"


def resolve_base_url(manifest_url: str) -> str:
    """
    Ricava l'URL base dell'addon dall'URL del manifest.
    https://host/path/manifest.json/ -> https://host/path
    """
    url = (manifest_url or "").strip()
    if url.endswith("/"):
        url = url[:-1]

    if not url.endswith(MANIFEST_SUFFIX):
        raise ManifestError(
            f"Invalid manifest URL format: must end with {MANIFEST_SUFFIX} (got '{manifest_url}')"
        )

    return url[: -len(MANIFEST_SUFFIX)]


async def initialize_addon(manifest_url: str, client: AsyncSession, timeout: float = 15.0) -> AddonConfig:
    """
    Risolve l'URL base e scarica il manifest dell'addon.
    Solleva ManifestError per qualsiasi problema: il chiamante decide se avviare comunque il server.
    """
    base_url = resolve_base_url(manifest_url)

    logger.info(f"Scarico il manifest da: {manifest_url}")
    try:
        response = await client.get(manifest_url, timeout=timeout)
    except RequestsError as e:
        raise ManifestError(f"Failed to fetch manifest: {e}") from e

    if not 200 <= response.status_code < 300:
        raise ManifestError(f"Failed to fetch manifest: HTTP {response.status_code} {response.reason}")

    try:
        manifest = response.json()
    except ValueError as e:
        raise ManifestError(f"Manifest is not valid JSON: {e}") from e

    if not isinstance(manifest, dict):
        raise ManifestError("Manifest is not a JSON object")

    addon = AddonConfig(manifest_url=manifest_url.strip(), base_url=base_url, manifest=manifest)

    logger.info("✅ Addon configurato correttamente!")
    logger.info(f"   Nome: {addon.name}")
    logger.info(f"   Base URL: {addon.base_url}")
    logger.info(f"   Versione: {addon.version}")
    return addon
