API_NAME = "Stremio to M3U8 API"
API_VERSION = "3.0.0"

FORMAT_HELP = 'Optional: "m3u8" for playlist file, or a stream format filter (mp4, mkv, webm, ...)'

ENDPOINTS = {
    "movie": {
        "method": "GET",
        "path": "/movie/{imdb}",
        "example": "/movie/tt32063098",
        "queryParams": {"format": FORMAT_HELP},
        "returns": "HTML video player page (or M3U8 with ?format=m3u8)",
    },
    "moviePlaylist": {
        "method": "GET",
        "path": "/movie/{imdb}/playlist.m3u8",
        "returns": "M3U8 playlist with every stream",
    },
    "movieStream": {
        "method": "GET",
        "path": "/movie/{imdb}/stream",
        "queryParams": {"format": "Optional: stream format filter"},
        "returns": "JSON metadata of the selected stream",
    },
    "movieRedirect": {
        "method": "GET",
        "path": "/movie/{imdb}/redirect",
        "queryParams": {"format": "Optional: stream format filter"},
        "returns": "302 redirect to the selected stream",
    },
    "tv": {
        "method": "GET",
        "path": "/tv/{imdb}/{season}/{episode}",
        "example": "/tv/tt32063098/1/1",
        "queryParams": {"format": FORMAT_HELP},
        "returns": "HTML video player page (or M3U8 with ?format=m3u8)",
    },
    "tvPlaylist": {
        "method": "GET",
        "path": "/tv/{imdb}/{season}/{episode}/playlist.m3u8",
        "returns": "M3U8 playlist with every stream",
    },
    "tvStream": {
        "method": "GET",
        "path": "/tv/{imdb}/{season}/{episode}/stream",
        "queryParams": {"format": "Optional: stream format filter"},
        "returns": "JSON metadata of the selected stream",
    },
    "tvRedirect": {
        "method": "GET",
        "path": "/tv/{imdb}/{season}/{episode}/redirect",
        "queryParams": {"format": "Optional: stream format filter"},
        "returns": "302 redirect to the selected stream",
    },
    "info": {"method": "GET", "path": "/info", "description": "Get current addon configuration"},
    "health": {"method": "GET", "path": "/health", "description": "Health check endpoint"},
}

SETUP = {
    "required": "Set MANIFEST_URL environment variable",
    "examples": [
        "MANIFEST_URL=https://nuviostreams.hayd.uk/manifest.json",
        "MANIFEST_URL=https://nuviostreams.hayd.uk/token123/manifest.json",
        "MANIFEST_URL=https://nuviostreams.hayd.uk/path/to/manifest.json",
    ],
}


def describe_api(configured: bool, supported_formats) -> dict:
    return {
        "name": API_NAME,
        "version": API_VERSION,
        "description": "Convert Stremio addon streams to M3U8 playlists",
        "configured": configured,
        "supportedFormats": list(supported_formats),
        "endpoints": ENDPOINTS,
        "setup": SETUP,
    }
