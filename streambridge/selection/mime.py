"""
Riconoscimento del tipo MIME di uno stream.

Il tipo viene ricavato da una lista ordinata di strategie (MIME_STRATEGIES):
la prima che restituisce un valore vince, le altre non vengono consultate.
Ogni strategia riceve l'esito del probe e restituisce il MIME normalizzato oppure None.
"""
import posixpath
from typing import Callable, Iterable, Optional
from urllib.parse import urlsplit, unquote

from streambridge.errors import UnsupportedFormat

HLS_MIME = "application/vnd.apple.mpegurl"
DASH_MIME = "application/dash+xml"
DEFAULT_MIME = "video/mp4"

# Formato richiesto (?format=...) -> MIME atteso
FORMAT_MIME_TYPES = {
    "mp4": "video/mp4",
    "m4v": "video/x-m4v",
    "mkv": "video/x-matroska",
    "webm": "video/webm",
    "avi": "video/x-msvideo",
    "mov": "video/quicktime",
    "flv": "video/x-flv",
    "ts": "video/mp2t",
    "m3u8": HLS_MIME,
    "mpd": DASH_MIME,
}

# Varianti dello stesso tipo che i server restituiscono in giro
MIME_ALIASES = {
    "application/x-mpegurl": HLS_MIME,
    "audio/mpegurl": HLS_MIME,
    "audio/x-mpegurl": HLS_MIME,
    "video/x-mpegurl": HLS_MIME,
    "video/matroska": "video/x-matroska",
    "video/avi": "video/x-msvideo",
}

# Header che non dicono niente sul contenuto: si passa alla strategia successiva
GENERIC_MIME_TYPES = {
    "application/octet-stream",
    "binary/octet-stream",
    "application/force-download",
    "text/plain",
}

STREAMING_MIME_TYPES = {HLS_MIME, DASH_MIME}

# Indizi nell'URL quando manca un'estensione riconoscibile
SUBSTRING_HINTS = [
    ("m3u8", HLS_MIME),
    ("/hls/", HLS_MIME),
    (".mpd", DASH_MIME),
    ("/dash/", DASH_MIME),
]


def normalize_mime(value: Optional[str]) -> Optional[str]:
    """'Video/MP4; charset=binary' -> 'video/mp4'"""
    if not value or not isinstance(value, str):
        return None
    mime = value.split(";", 1)[0].strip().lower()
    if not mime:
        return None
    return MIME_ALIASES.get(mime, mime)


def supported_formats():
    return sorted(FORMAT_MIME_TYPES)


def target_mime_for(fmt: str) -> str:
    """Ricava il MIME atteso dal formato richiesto (case-insensitive)."""
    key = (fmt or "").strip().lower().lstrip(".")
    if key not in FORMAT_MIME_TYPES:
        raise UnsupportedFormat(format=fmt, supportedFormats=supported_formats())
    return FORMAT_MIME_TYPES[key]


def is_playable_mime(mime: Optional[str]) -> bool:
    """Senza formato richiesto va bene qualsiasi video o playlist di streaming."""
    if not mime:
        return False
    return mime.startswith("video/") or mime in STREAMING_MIME_TYPES


def url_extension(url: str) -> Optional[str]:
    path = unquote(urlsplit(url or "").path)
    ext = posixpath.splitext(path)[1]
    return ext[1:].lower() if ext else None


# --- STRATEGIE ---

def from_header(probe) -> Optional[str]:
    mime = normalize_mime(probe.content_type)
    if mime and mime not in GENERIC_MIME_TYPES:
        return mime
    return None


def from_declared(probe) -> Optional[str]:
    # Alcuni addon dichiarano il tipo direttamente nello stream
    mime = normalize_mime(probe.stream.get("mimeType"))
    if mime and mime not in GENERIC_MIME_TYPES:
        return mime
    return None


def from_extension(probe) -> Optional[str]:
    ext = url_extension(probe.url)
    return FORMAT_MIME_TYPES.get(ext) if ext else None


def from_substring(probe) -> Optional[str]:
    url = (probe.url or "").lower()
    for hint, mime in SUBSTRING_HINTS:
        if hint in url:
            return mime
    return None


def default_mime(probe) -> Optional[str]:
    return DEFAULT_MIME


MimeStrategy = Callable[[object], Optional[str]]

MIME_STRATEGIES = [
    from_header,
    from_declared,
    from_extension,
    from_substring,
    default_mime,
]


def first_success(strategies: Iterable[MimeStrategy], probe) -> Optional[str]:
    for strategy in strategies:
        mime = strategy(probe)
        if mime:
            return mime
    return None


def infer_mime(probe, strategies: Iterable[MimeStrategy] = None) -> Optional[str]:
    return first_success(MIME_STRATEGIES if strategies is None else strategies, probe)
