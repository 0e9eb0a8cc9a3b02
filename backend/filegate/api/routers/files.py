import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.requests import ClientDisconnect

from filegate.api.deps import get_current_identity, get_file_service, require_delete_role
from filegate.core.errors import SizeExceeded
from filegate.schemas import (
    DeleteResponse,
    DownloadResponse,
    HealthResponse,
    Identity,
    PresignRequest,
    PresignResponse,
    UploadResponse,
)
from filegate.services.files import FileService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/health", response_model=HealthResponse)
async def health(service: FileService = Depends(get_file_service)):
    healthy = await service.health_check()
    payload = HealthResponse(
        success=healthy,
        healthy=healthy,
        timestamp=datetime.now(timezone.utc),
    )
    if not healthy:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=payload.model_dump(mode="json"),
        )
    return payload


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_file(
    request: Request,
    filename: str = Query(..., min_length=1, max_length=255),
    folder: str | None = Query(default=None, max_length=255),
    identity: Identity = Depends(get_current_identity),
    service: FileService = Depends(get_file_service),
) -> UploadResponse:
    declared_length = request.headers.get("content-length")
    if declared_length and declared_length.isdigit():
        if int(declared_length) > service.settings.max_file_size:
            raise SizeExceeded(
                f"File size {declared_length} bytes exceeds maximum allowed size "
                f"{service.settings.max_file_size} bytes"
            )

    try:
        result = await service.upload(
            identity,
            folder,
            filename,
            request.headers.get("content-type", ""),
            request.stream(),
        )
    except ClientDisconnect:
        logger.warning("Client disconnected during upload of %s by %s", filename, identity.subject_id)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Upload aborted") from None
    return UploadResponse(
        key=result.key,
        url=result.url,
        size=result.size,
        mime=result.mime,
        folder=result.folder,
        filename=result.filename,
    )


@router.post("/presign", response_model=PresignResponse)
async def presign_upload(
    payload: PresignRequest,
    identity: Identity = Depends(get_current_identity),
    service: FileService = Depends(get_file_service),
) -> PresignResponse:
    object_key, upload_url = await service.create_upload_url(
        payload.filename,
        payload.content_type,
        payload.folder,
    )
    logger.info("Issued upload URL for %s to user %s", object_key, identity.subject_id)
    return PresignResponse(upload_url=upload_url, object_key=object_key)


@router.get("/download/{key:path}", response_model=DownloadResponse)
async def get_download_url(
    key: str,
    identity: Identity = Depends(get_current_identity),
    service: FileService = Depends(get_file_service),
) -> DownloadResponse:
    retrieval = await service.get_retrieval_url(key)
    return DownloadResponse(
        download_url=retrieval.url,
        object_key=retrieval.key,
        cache_hit=retrieval.cache_hit,
    )


@router.get("/object/{key:path}")
async def get_file(
    key: str,
    identity: Identity = Depends(get_current_identity),
    service: FileService = Depends(get_file_service),
) -> StreamingResponse:
    stream = await service.open_download(key)
    headers = {}
    if stream.content_length is not None:
        headers["Content-Length"] = str(stream.content_length)
    return StreamingResponse(stream.chunks, media_type=stream.content_type, headers=headers)


@router.delete("/{key:path}", response_model=DeleteResponse)
async def delete_file(
    key: str,
    identity: Identity = Depends(require_delete_role()),
    service: FileService = Depends(get_file_service),
) -> DeleteResponse:
    await service.delete(key)
    logger.info("File %s deleted by user %s (%s)", key, identity.subject_id, identity.role)
    return DeleteResponse()
