from pathlib import Path
from typing import Any, Dict

from fastapi import Request
from fastapi.templating import Jinja2Templates

from streambridge.selection.mime import HLS_MIME

# Setup Templates (pagina player.html)
templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

# Il browser prova le sorgenti in ordine e usa la prima che sa riprodurre
SOURCE_TYPES = ["video/mp4", "video/webm", HLS_MIME]


def render_player(request: Request, stream: Dict[str, Any], title: str = "Video Player"):
    """Pagina HTML con un <video> che punta allo stream scelto."""
    return templates.TemplateResponse(
        request,
        "player.html",
        {
            "title": title,
            "stream_url": stream.get("url"),
            "source_types": SOURCE_TYPES,
        },
    )
