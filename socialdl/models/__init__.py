from .internal import (
    ExtractedMetadata,
    ExtractionRequest,
    MediaFormat,
    RetentionPolicy,
    StagedFile,
    SweepReport,
)
from .request import DownloadRequest, InfoRequest
from .response import DownloadResponse, ErrorResponse, InfoResponse, SupportedSitesResponse

__all__ = [
    "DownloadRequest",
    "DownloadResponse",
    "ErrorResponse",
    "ExtractedMetadata",
    "ExtractionRequest",
    "InfoRequest",
    "InfoResponse",
    "MediaFormat",
    "RetentionPolicy",
    "StagedFile",
    "SupportedSitesResponse",
    "SweepReport",
]
