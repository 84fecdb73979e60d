from .errors import (
    DownloadFailed,
    ExtractionFailed,
    ExtractorUnavailable,
    InvalidURL,
    MediaError,
    MetadataTimeout,
    NotFound,
)

__all__ = [
    "DownloadFailed",
    "ExtractionFailed",
    "ExtractorUnavailable",
    "InvalidURL",
    "MediaError",
    "MetadataTimeout",
    "NotFound",
]
