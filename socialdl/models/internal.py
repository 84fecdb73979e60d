import math
import os
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, validator

from socialdl.config.settings import StorageConfig

DEFAULT_TITLE = "Unknown Title"
DEFAULT_UPLOADER = "Unknown"


class MediaFormat(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"

    @property
    def extension(self) -> str:
        return "mp3" if self is MediaFormat.AUDIO else "mp4"


class ExtractionRequest(BaseModel):
    """Internal extraction request (separated from HTTP concerns)"""
    model_config = ConfigDict(frozen=True)

    url: str
    desired_format: MediaFormat = MediaFormat.VIDEO
    desired_quality: str = "best"


class ExtractedMetadata(BaseModel):
    """
    Metadata parsed from the extractor's JSON dump.

    Every field falls back to a default when the tool omits it or reports
    something of the wrong shape, so building this never fails on content.
    """
    title: str = DEFAULT_TITLE
    thumbnail_url: str = ""
    duration_seconds: Optional[float] = None
    uploader: str = DEFAULT_UPLOADER
    view_count: int = 0
    raw_formats: List[Dict[str, Any]] = []
    extractor: Optional[str] = None
    webpage_url: Optional[str] = None

    @validator('title', pre=True)
    def default_title(cls, v):
        if isinstance(v, str) and v.strip():
            return v.strip()
        return DEFAULT_TITLE

    @validator('uploader', pre=True)
    def default_uploader(cls, v):
        if isinstance(v, str) and v.strip():
            return v.strip()
        return DEFAULT_UPLOADER

    @validator('thumbnail_url', pre=True)
    def default_thumbnail(cls, v):
        return v if isinstance(v, str) else ""

    @validator('duration_seconds', pre=True)
    def parse_duration(cls, v):
        if v is None or isinstance(v, bool):
            return None
        try:
            seconds = float(v)
        except (TypeError, ValueError):
            return None
        if math.isnan(seconds) or math.isinf(seconds) or seconds < 0:
            return None
        return seconds

    @validator('view_count', pre=True)
    def parse_view_count(cls, v):
        if v is None or isinstance(v, bool):
            return 0
        try:
            count = int(v)
        except (TypeError, ValueError, OverflowError):
            return 0
        return max(count, 0)

    @validator('raw_formats', pre=True)
    def keep_format_dicts(cls, v):
        if not isinstance(v, list):
            return []
        return [f for f in v if isinstance(f, dict)]

    @validator('extractor', 'webpage_url', pre=True)
    def optional_string(cls, v):
        return v if isinstance(v, str) and v else None

    @classmethod
    def from_info(cls, info: Dict[str, Any]) -> "ExtractedMetadata":
        """Map a yt-dlp info dict onto the metadata shape"""
        return cls(
            title=info.get("title"),
            thumbnail_url=info.get("thumbnail"),
            duration_seconds=info.get("duration"),
            uploader=info.get("uploader") or info.get("channel"),
            view_count=info.get("view_count"),
            raw_formats=info.get("formats"),
            extractor=info.get("extractor_key") or info.get("extractor"),
            webpage_url=info.get("webpage_url"),
        )


@dataclass(frozen=True)
class StagedFile:
    """A downloaded file sitting in the staging directory"""
    directory: str
    requested_name: str
    actual_name: str
    created_at: datetime
    size: int

    @property
    def path(self) -> str:
        return os.path.join(self.directory, self.actual_name)


@dataclass(frozen=True)
class RetentionPolicy:
    max_age: float = 3600.0
    sweep_interval: float = 1800.0
    post_download_grace: float = 60.0

    @classmethod
    def from_config(cls, storage: StorageConfig) -> "RetentionPolicy":
        return cls(
            max_age=storage.max_age_seconds,
            sweep_interval=storage.sweep_interval_seconds,
            post_download_grace=storage.post_download_grace_seconds,
        )


@dataclass
class SweepReport:
    processed: int = 0
    deleted: int = 0
    errors: int = 0
