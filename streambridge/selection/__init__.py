from .mime import FORMAT_MIME_TYPES, MIME_STRATEGIES, infer_mime, supported_formats, target_mime_for
from .selector import CONCURRENT, SEQUENTIAL, Probe, StreamSelector

__all__ = [
    "FORMAT_MIME_TYPES",
    "MIME_STRATEGIES",
    "infer_mime",
    "supported_formats",
    "target_mime_for",
    "CONCURRENT",
    "SEQUENTIAL",
    "Probe",
    "StreamSelector",
]
