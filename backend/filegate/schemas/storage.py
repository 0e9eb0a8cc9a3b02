from datetime import datetime

from pydantic import BaseModel, Field


class PresignRequest(BaseModel):
    filename: str = Field(..., min_length=1, max_length=255)
    content_type: str = Field(default="application/octet-stream")
    folder: str | None = Field(default=None, max_length=255, pattern=r"^[A-Za-z0-9_/-]+$")


class PresignResponse(BaseModel):
    upload_url: str
    object_key: str


class UploadResponse(BaseModel):
    key: str
    url: str
    size: int
    mime: str
    folder: str
    filename: str


class DownloadResponse(BaseModel):
    download_url: str
    object_key: str
    cache_hit: bool


class DeleteResponse(BaseModel):
    success: bool = True
    message: str = "File deleted successfully"


class HealthResponse(BaseModel):
    success: bool
    healthy: bool
    timestamp: datetime


class ErrorResponse(BaseModel):
    error: str
    message: str
