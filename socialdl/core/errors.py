from typing import Any, Dict, Optional


class MediaError(Exception):
    """
    Base class for failures of the extraction/staging pipeline.
    Carries the HTTP status and the i18n key used to render it.
    """
    status_code = 500
    message_key = "error.generic"

    def __init__(self, detail: str = "", **params: Any):
        super().__init__(detail or self.message_key)
        self.detail = detail
        self.params: Dict[str, Any] = params

    def render(self, translate) -> str:
        return translate(self.message_key, reason=self.detail, **self.params)


class ExtractorUnavailable(MediaError):
    """No working yt-dlp invocation could be found"""
    status_code = 503
    message_key = "error.extractor_unavailable"


class InvalidURL(MediaError):
    """Source URL is malformed or not supported by the extractor"""
    status_code = 400
    message_key = "error.invalid_url"


class MetadataTimeout(MediaError):
    status_code = 504
    message_key = "error.timeout"


class ExtractionFailed(MediaError):
    status_code = 500
    message_key = "error.fetch_info_failed"


class DownloadFailed(MediaError):
    status_code = 500
    message_key = "error.download_failed"


class NotFound(MediaError):
    status_code = 404
    message_key = "error.file_not_found"

    def __init__(self, name: Optional[str] = None):
        super().__init__(name or "", name=name or "")
