import pytest

from streambridge.errors import UnsupportedFormat
from streambridge.selection import MIME_STRATEGIES, Probe, infer_mime, target_mime_for
from streambridge.selection.mime import (
    DEFAULT_MIME,
    HLS_MIME,
    first_success,
    from_extension,
    from_header,
    is_playable_mime,
    normalize_mime,
    url_extension,
)


def probe(url, content_type=None, **stream):
    return Probe(stream={"url": url, **stream}, status_code=200, content_type=content_type)


def test_normalize_mime_strips_parameters_and_case():
    assert normalize_mime("Video/MP4; charset=binary") == "video/mp4"
    assert normalize_mime("application/x-mpegURL") == HLS_MIME
    assert normalize_mime("") is None
    assert normalize_mime(None) is None


def test_format_lookup_is_case_insensitive():
    assert target_mime_for("MKV") == target_mime_for("mkv") == "video/x-matroska"
    assert target_mime_for(" M3U8 ") == HLS_MIME


def test_unsupported_format_lists_supported_ones():
    with pytest.raises(UnsupportedFormat) as exc:
        target_mime_for("divx")

    body = exc.value.to_dict()
    assert body["error"] == "Unsupported format"
    assert "mp4" in body["supportedFormats"]
    assert exc.value.status_code == 400


def test_header_wins_over_extension():
    assert infer_mime(probe("https://cdn/movie.mkv", "video/webm")) == "video/webm"


def test_generic_header_falls_back_to_declared_type():
    p = probe("https://cdn/download?id=1", "application/octet-stream", mimeType="video/x-matroska")
    assert infer_mime(p) == "video/x-matroska"


def test_missing_header_falls_back_to_extension():
    assert infer_mime(probe("https://cdn/path/Movie.2024.MKV?token=abc")) == "video/x-matroska"


def test_substring_heuristic_detects_hls():
    assert infer_mime(probe("https://cdn/playlist/m3u8/master?x=1")) == HLS_MIME


def test_default_type_when_nothing_matches():
    assert infer_mime(probe("https://cdn/play?id=42")) == DEFAULT_MIME


def test_first_success_stops_at_first_answer():
    seen = []

    def no(p):
        seen.append("no")
        return None

    def yes(p):
        seen.append("yes")
        return "video/webm"

    def never(p):
        raise AssertionError("should not be called")

    assert first_success([no, yes, never], probe("https://cdn/x")) == "video/webm"
    assert seen == ["no", "yes"]


def test_strategies_are_ordered_header_first():
    assert MIME_STRATEGIES[0] is from_header
    assert first_success([from_extension], probe("https://cdn/noext")) is None


def test_url_extension():
    assert url_extension("https://cdn/a/b.Mp4?x=1#t") == "mp4"
    assert url_extension("https://cdn/a/b") is None


def test_is_playable_mime():
    assert is_playable_mime("video/mp4")
    assert is_playable_mime(HLS_MIME)
    assert not is_playable_mime("text/html")
    assert not is_playable_mime(None)
