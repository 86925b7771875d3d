import re
import logging
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

M3U8_HEADER = "#EXTM3U\n#EXT-X-VERSION:3\n\n"

QUALITY_RE = re.compile(r"(\d+p|4K)", re.IGNORECASE)
SIZE_RE = re.compile(r"([\d.]+GB)")

DEFAULT_BANDWIDTH = 5000000

# Stime grossolane, bastano al player per ordinare le varianti
BANDWIDTH_TIERS = [
    (("2160p", "4K"), 20000000),
    (("1080p",), 8000000),
    (("720p",), 5000000),
    (("480p",), 2500000),
]


def estimate_bandwidth(quality: str) -> int:
    for markers, bandwidth in BANDWIDTH_TIERS:
        if any(marker.lower() in quality.lower() for marker in markers):
            return bandwidth
    return DEFAULT_BANDWIDTH


def describe_stream(stream: Dict[str, Any], index: int) -> Dict[str, Any]:
    """Ricava nome sorgente, qualità e dimensione dal titolo dello stream."""
    title = str(stream.get("title") or stream.get("name") or f"Stream {index + 1}")
    source = str(stream.get("name") or "Unknown Source")

    quality_match = QUALITY_RE.search(title)
    size_match = SIZE_RE.search(title)
    quality = quality_match.group(1) if quality_match else "Unknown"
    size = size_match.group(1) if size_match else ""

    display_name = f"{source} - {quality}" + (f" - {size}" if size else "")
    return {
        "source": source,
        "quality": quality,
        "size": size,
        "display_name": display_name,
        "bandwidth": estimate_bandwidth(quality),
    }


def streams_to_m3u8(streams: List[Dict[str, Any]]) -> str:
    content = M3U8_HEADER

    for index, stream in enumerate(streams or []):
        url = stream.get("url")
        if not url or not isinstance(url, str):
            logger.debug(f"Stream #{index + 1} senza url, saltato")
            continue

        info = describe_stream(stream, index)
        content += (
            f'#EXTINF:-1 tvg-name="{info["display_name"]}" '
            f'group-title="{info["source"]}",{info["display_name"]}\n'
        )
        content += f"#EXT-X-STREAM-INF:BANDWIDTH={info['bandwidth']}\n"
        content += f"{url}\n\n"

    return content
