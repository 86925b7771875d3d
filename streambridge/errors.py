"""
Errori applicativi.
Ogni errore conosce il proprio status HTTP e il corpo JSON da restituire,
l'handler registrato in main.py si limita a serializzarli.
"""
from typing import Any, Dict, Optional


class StreamBridgeError(Exception):
    status_code = 500
    error = "Internal error"

    def __init__(self, error: Optional[str] = None, **context: Any):
        self.error = error or self.error
        self.context = context
        super().__init__(self.error)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, **self.context}


class AddonNotConfigured(StreamBridgeError):
    status_code = 503
    error = "Addon not configured"

    def __init__(self):
        super().__init__(
            message="Please set MANIFEST_URL environment variable",
            example="MANIFEST_URL=https://nuviostreams.hayd.uk/manifest.json",
        )


class InvalidRequest(StreamBridgeError):
    status_code = 400
    error = "Invalid request"


class UnsupportedFormat(StreamBridgeError):
    status_code = 400
    error = "Unsupported format"


class NoStreamsFound(StreamBridgeError):
    status_code = 404
    error = "No streams found"


class NoPlayableStream(StreamBridgeError):
    status_code = 404
    error = "No playable stream found"


class UpstreamError(StreamBridgeError):
    """Fallimento nel contattare l'addon (status non 2xx, rete, JSON non valido)."""
    status_code = 500
    error = "Failed to fetch streams"


class ManifestError(ValueError):
    """URL del manifest non valido o manifest non raggiungibile."""
