import re
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response
from curl_cffi.requests import AsyncSession

# Import interni
from streambridge.addon import episode_streams_url, fetch_streams, movie_streams_url
from streambridge.config import AddonConfig, Settings, initialize_addon
from streambridge.errors import (
    AddonNotConfigured,
    InvalidRequest,
    ManifestError,
    NoPlayableStream,
    NoStreamsFound,
    StreamBridgeError,
    UpstreamError,
)
from streambridge.manifest import API_NAME, API_VERSION, describe_api
from streambridge.player import render_player
from streambridge.playlist import streams_to_m3u8
from streambridge.selection import StreamSelector, supported_formats, target_mime_for

logger = logging.getLogger("StreamBridge")

IMDB_RE = re.compile(r"^tt\d+$")
NUMBER_RE = re.compile(r"^\d+$")

M3U8_MEDIA_TYPE = "application/vnd.apple.mpegurl"

router = APIRouter()


@dataclass(frozen=True)
class MediaRequest:
    """Film (solo imdb) o episodio (imdb + stagione + episodio) richiesto dal client."""
    imdb: str
    season: Optional[str] = None
    episode: Optional[str] = None

    @property
    def is_episode(self) -> bool:
        return self.season is not None

    def streams_url(self, addon: AddonConfig) -> str:
        if self.is_episode:
            return episode_streams_url(addon, self.imdb, self.season, self.episode)
        return movie_streams_url(addon, self.imdb)

    @property
    def title(self) -> str:
        if self.is_episode:
            return f"TV Show {self.imdb} S{self.season}E{self.episode}"
        return f"Movie {self.imdb}"

    @property
    def filename(self) -> str:
        if self.is_episode:
            return f"{self.imdb}_S{self.season}E{self.episode}.m3u8"
        return f"{self.imdb}.m3u8"

    @property
    def fetch_error(self) -> str:
        return "Failed to fetch TV show streams" if self.is_episode else "Failed to fetch movie streams"

    @property
    def not_found_error(self) -> str:
        return "No streams found for this episode" if self.is_episode else "No streams found for this movie"

    def to_dict(self) -> Dict[str, Any]:
        data = {"imdb": self.imdb}
        if self.is_episode:
            data.update(season=self.season, episode=self.episode)
        return data


# --- DIPENDENZE ---

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_addon(request: Request) -> AddonConfig:
    """Tutte le rotte dati passano da qui: senza addon configurato si risponde 503."""
    addon = request.app.state.addon
    if addon is None:
        raise AddonNotConfigured()
    return addon


def _validate_imdb(imdb: str):
    if not IMDB_RE.match(imdb):
        raise InvalidRequest("Invalid IMDb ID format. Must be in format: ttXXXXXXX")


def movie_request(imdb: str) -> MediaRequest:
    _validate_imdb(imdb)
    return MediaRequest(imdb=imdb)


def episode_request(imdb: str, season: str, episode: str) -> MediaRequest:
    _validate_imdb(imdb)
    if not (NUMBER_RE.match(season) and NUMBER_RE.match(episode)):
        raise InvalidRequest("Season and episode must be valid numbers")
    return MediaRequest(imdb=imdb, season=season, episode=episode)


async def get_client(settings: Settings = Depends(get_settings)):
    # Sessione per richiesta, chiusa a risposta inviata
    async with AsyncSession(impersonate=settings.impersonate) as client:
        yield client


def get_selector(client: AsyncSession = Depends(get_client),
                 settings: Settings = Depends(get_settings)) -> StreamSelector:
    return StreamSelector(
        client,
        timeout=settings.probe_timeout,
        strategy=settings.probe_strategy,
        concurrency=settings.probe_concurrency,
    )


# --- LOGICA COMUNE ---

async def load_streams(media: MediaRequest, addon: AddonConfig, client: AsyncSession,
                       settings: Settings) -> List[Dict[str, Any]]:
    logger.info(f"Richiesta Stream: {media.title}")
    try:
        streams = await fetch_streams(media.streams_url(addon), client, timeout=settings.fetch_timeout)
    except UpstreamError as e:
        raise UpstreamError(media.fetch_error, **e.context) from e

    if not streams:
        raise NoStreamsFound(media.not_found_error)

    logger.info(f"Totale stream trovati: {len(streams)}")
    return streams


async def choose_stream(streams: List[Dict[str, Any]], fmt: Optional[str],
                        selector: StreamSelector) -> Dict[str, Any]:
    chosen = await selector.select(streams, fmt)
    if chosen is None:
        raise NoPlayableStream(
            format=fmt,
            hint=f"Try one of the supported formats: {', '.join(supported_formats())}",
            supportedFormats=supported_formats(),
            totalStreams=len(streams),
        )
    return chosen


def playlist_response(streams: List[Dict[str, Any]], media: MediaRequest) -> Response:
    return Response(
        content=streams_to_m3u8(streams),
        media_type=M3U8_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{media.filename}"'},
    )


def stream_metadata(stream: Dict[str, Any]) -> Dict[str, Any]:
    # Campi mancanti -> segnaposto, il resto passa invariato
    return {
        **stream,
        "url": stream.get("url"),
        "title": stream.get("title") or stream.get("name") or "Untitled",
        "name": stream.get("name") or "Unknown Source",
        "mimeType": stream.get("mimeType"),
    }


async def serve_player(request: Request, media: MediaRequest, fmt: Optional[str], addon: AddonConfig,
                       client: AsyncSession, settings: Settings, selector: StreamSelector):
    wants_playlist = bool(fmt) and fmt.strip().lower() == "m3u8"
    # Formato non supportato -> 400 prima ancora di chiamare l'addon
    if fmt and not wants_playlist:
        target_mime_for(fmt)

    streams = await load_streams(media, addon, client, settings)

    if wants_playlist:
        return playlist_response(streams, media)

    stream = await choose_stream(streams, fmt, selector)
    return render_player(request, stream, media.title)


async def serve_json(media: MediaRequest, fmt: Optional[str], addon: AddonConfig,
                     client: AsyncSession, settings: Settings, selector: StreamSelector):
    if fmt:
        target_mime_for(fmt)
    streams = await load_streams(media, addon, client, settings)
    stream = await choose_stream(streams, fmt, selector)
    return {
        **media.to_dict(),
        "format": fmt,
        "totalStreams": len(streams),
        "stream": stream_metadata(stream),
    }


async def serve_redirect(media: MediaRequest, fmt: Optional[str], addon: AddonConfig,
                         client: AsyncSession, settings: Settings, selector: StreamSelector):
    if fmt:
        target_mime_for(fmt)
    streams = await load_streams(media, addon, client, settings)
    stream = await choose_stream(streams, fmt, selector)
    return RedirectResponse(stream["url"], status_code=302)


# --- ENDPOINTS ---
# L'ordine dei Depends conta: prima il controllo di configurazione (503),
# poi la validazione dei parametri (400), infine la sessione HTTP.

@router.get("/movie/{imdb}/playlist.m3u8")
async def movie_playlist(addon: AddonConfig = Depends(get_addon),
                         media: MediaRequest = Depends(movie_request),
                         settings: Settings = Depends(get_settings),
                         client: AsyncSession = Depends(get_client)):
    streams = await load_streams(media, addon, client, settings)
    return playlist_response(streams, media)


@router.get("/movie/{imdb}/stream")
async def movie_stream(format: Optional[str] = None,
                       addon: AddonConfig = Depends(get_addon),
                       media: MediaRequest = Depends(movie_request),
                       settings: Settings = Depends(get_settings),
                       client: AsyncSession = Depends(get_client),
                       selector: StreamSelector = Depends(get_selector)):
    return await serve_json(media, format, addon, client, settings, selector)


@router.get("/movie/{imdb}/redirect")
async def movie_redirect(format: Optional[str] = None,
                         addon: AddonConfig = Depends(get_addon),
                         media: MediaRequest = Depends(movie_request),
                         settings: Settings = Depends(get_settings),
                         client: AsyncSession = Depends(get_client),
                         selector: StreamSelector = Depends(get_selector)):
    return await serve_redirect(media, format, addon, client, settings, selector)


@router.get("/movie/{imdb}")
async def movie(request: Request,
                format: Optional[str] = None,
                addon: AddonConfig = Depends(get_addon),
                media: MediaRequest = Depends(movie_request),
                settings: Settings = Depends(get_settings),
                client: AsyncSession = Depends(get_client),
                selector: StreamSelector = Depends(get_selector)):
    """
    Player HTML con il primo stream utilizzabile.
    Con ?format=m3u8 restituisce invece la playlist di tutti gli stream.
    """
    return await serve_player(request, media, format, addon, client, settings, selector)


@router.get("/tv/{imdb}/{season}/{episode}/playlist.m3u8")
async def tv_playlist(addon: AddonConfig = Depends(get_addon),
                      media: MediaRequest = Depends(episode_request),
                      settings: Settings = Depends(get_settings),
                      client: AsyncSession = Depends(get_client)):
    streams = await load_streams(media, addon, client, settings)
    return playlist_response(streams, media)


@router.get("/tv/{imdb}/{season}/{episode}/stream")
async def tv_stream(format: Optional[str] = None,
                    addon: AddonConfig = Depends(get_addon),
                    media: MediaRequest = Depends(episode_request),
                    settings: Settings = Depends(get_settings),
                    client: AsyncSession = Depends(get_client),
                    selector: StreamSelector = Depends(get_selector)):
    return await serve_json(media, format, addon, client, settings, selector)


@router.get("/tv/{imdb}/{season}/{episode}/redirect")
async def tv_redirect(format: Optional[str] = None,
                      addon: AddonConfig = Depends(get_addon),
                      media: MediaRequest = Depends(episode_request),
                      settings: Settings = Depends(get_settings),
                      client: AsyncSession = Depends(get_client),
                      selector: StreamSelector = Depends(get_selector)):
    return await serve_redirect(media, format, addon, client, settings, selector)


@router.get("/tv/{imdb}/{season}/{episode}")
async def tv(request: Request,
             format: Optional[str] = None,
             addon: AddonConfig = Depends(get_addon),
             media: MediaRequest = Depends(episode_request),
             settings: Settings = Depends(get_settings),
             client: AsyncSession = Depends(get_client),
             selector: StreamSelector = Depends(get_selector)):
    return await serve_player(request, media, format, addon, client, settings, selector)


@router.get("/info")
async def info(request: Request):
    """Configurazione corrente, disponibile anche senza addon."""
    addon = request.app.state.addon
    settings = request.app.state.settings
    return {
        "configured": addon is not None,
        "addon": {
            "name": addon.name,
            "version": addon.version,
            "description": addon.description,
            "baseUrl": addon.base_url,
        } if addon else None,
        "environment": {
            "manifestUrl": settings.manifest_url or "Not set",
        },
    }


@router.get("/health")
async def health(request: Request):
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "addonConfigured": request.app.state.addon is not None,
    }


@router.get("/")
async def root(request: Request):
    return describe_api(request.app.state.addon is not None, supported_formats())


async def handle_stream_bridge_error(request: Request, exc: StreamBridgeError):
    if exc.status_code >= 500:
        logger.error(f"{request.url.path}: {exc.error} {exc.context}")
    else:
        logger.warning(f"{request.url.path}: {exc.status_code} {exc.error}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(settings: Optional[Settings] = None, addon: Optional[AddonConfig] = None) -> FastAPI:
    """
    Costruisce l'applicazione.
    Se `addon` non è passato, lo startup prova a risolverlo da MANIFEST_URL;
    in caso di errore il server parte comunque e le rotte dati rispondono 503.
    """
    settings = settings or Settings.from_env()

    # Configurazione Logging
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S"
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.addon is None:
            if settings.manifest_url:
                async with AsyncSession(impersonate=settings.impersonate) as client:
                    try:
                        app.state.addon = await initialize_addon(
                            settings.manifest_url, client, timeout=settings.fetch_timeout
                        )
                    except ManifestError as e:
                        logger.error(f"❌ Errore inizializzazione addon: {e}")
                        logger.warning("⚠️ Il server parte comunque, le rotte dati risponderanno 503")
            else:
                logger.warning("⚠️ MANIFEST_URL non impostata: le rotte dati risponderanno 503")

        logger.info(f"🚀 Server pronto su {settings.host}:{settings.port}")
        yield

    app = FastAPI(title=API_NAME, version=API_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.addon = addon

    # --- CONFIGURAZIONE CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StreamBridgeError, handle_stream_bridge_error)
    app.include_router(router)
    return app


app = create_app()


def run():
    import uvicorn
    settings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port)


# Blocco per avvio locale (senza Docker)
if __name__ == "__main__":
    run()
