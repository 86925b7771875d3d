import logging
from typing import Any, Dict, List

from curl_cffi.requests import AsyncSession, RequestsError

from streambridge.config import AddonConfig
from streambridge.errors import UpstreamError

logger = logging.getLogger(__name__)


def movie_streams_url(addon: AddonConfig, imdb_id: str) -> str:
    return f"{addon.base_url}/stream/movie/{imdb_id}.json"


def episode_streams_url(addon: AddonConfig, imdb_id: str, season: str, episode: str) -> str:
    # Formato ID Stremio per le serie: tt123:stagione:episodio
    return f"{addon.base_url}/stream/series/{imdb_id}:{season}:{episode}.json"


async def fetch_streams(url: str, client: AsyncSession, timeout: float = 15.0) -> List[Dict[str, Any]]:
    """
    Interroga l'addon e restituisce la lista 'streams' (vuota se assente).
    Nessun retry: qualsiasi errore diventa UpstreamError.
    """
    logger.info(f"Richiesta stream all'addon: {url}")

    try:
        response = await client.get(url, timeout=timeout)
    except RequestsError as e:
        raise UpstreamError(message=f"Error fetching Stremio addon: {e}") from e

    if not 200 <= response.status_code < 300:
        raise UpstreamError(
            message=f"Failed to fetch streams: HTTP {response.status_code} {response.reason}"
        )

    try:
        data = response.json()
    except ValueError as e:
        raise UpstreamError(message=f"Invalid JSON from Stremio addon: {e}") from e

    streams = data.get("streams") if isinstance(data, dict) else None
    if not isinstance(streams, list):
        return []

    # Teniamo solo i record veri e propri, il resto non è utilizzabile
    return [s for s in streams if isinstance(s, dict)]
