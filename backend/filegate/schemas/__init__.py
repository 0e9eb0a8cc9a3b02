from filegate.schemas.identity import Identity
from filegate.schemas.storage import (
    DeleteResponse,
    DownloadResponse,
    ErrorResponse,
    HealthResponse,
    PresignRequest,
    PresignResponse,
    UploadResponse,
)

__all__ = [
    "Identity",
    "PresignRequest",
    "PresignResponse",
    "UploadResponse",
    "DownloadResponse",
    "DeleteResponse",
    "HealthResponse",
    "ErrorResponse",
]
