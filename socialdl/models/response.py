from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class InfoResponse(BaseModel):
    """Media information response"""
    success: bool = True
    platform: str
    title: str
    thumbnail: str = ""
    duration: Optional[str] = None
    uploader: str
    view_count: int = 0


class DownloadResponse(BaseModel):
    """Staged download response"""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    title: str
    thumbnail: str = ""
    format: str
    quality: str
    file_size: str = Field(..., alias="fileSize")
    download_url: str = Field(..., alias="downloadUrl")
    duration: Optional[str] = None
    filename: str


class SupportedSitesResponse(BaseModel):
    success: bool = True
    count: int
    extractors: List[str]


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
