import re
from urllib.parse import urlparse

from pydantic import BaseModel, Field, HttpUrl, validator

from socialdl.models.internal import ExtractionRequest, MediaFormat

QUALITY_PATTERN = re.compile(r"^[A-Za-z0-9.]{1,16}$")


class InfoRequest(BaseModel):
    url: HttpUrl = Field(..., description="Media URL")

    @validator('url')
    def validate_url_syntax(cls, v):
        """Validate URL syntax only (SSRF check done at endpoint)"""
        parsed = urlparse(str(v))
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("Invalid URL format")
        return v


class DownloadRequest(InfoRequest):
    format: MediaFormat = Field(MediaFormat.VIDEO, description="video or audio")
    quality: str = Field("best", description="'best', a max height such as 720p, or an audio quality such as 192K")

    @validator('quality', pre=True)
    def validate_quality(cls, v):
        """Quality ends up as a command-line value, so keep it to a plain token"""
        if v is None or v == "":
            return "best"
        v = str(v).strip()
        if not QUALITY_PATTERN.match(v):
            raise ValueError("Quality must be 'best' or an alphanumeric token such as 720p")
        return v

    def to_extraction_request(self) -> ExtractionRequest:
        return ExtractionRequest(
            url=str(self.url),
            desired_format=self.format,
            desired_quality=self.quality,
        )
