import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from filegate.api.routers import files as files_router
from filegate.core.config import get_settings
from filegate.core.errors import (
    BackendUnavailable,
    BlockedExtension,
    ConfigurationError,
    FileGateError,
    InvalidKey,
    NotFound,
    SignatureMismatch,
    SizeExceeded,
    UnsupportedType,
)
from filegate.core.logging_config import configure_logging
from filegate.schemas import ErrorResponse
from filegate.services.files import FileService
from filegate.services.storage import StorageService

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: dict[type[FileGateError], int] = {
    InvalidKey: status.HTTP_400_BAD_REQUEST,
    UnsupportedType: status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    BlockedExtension: status.HTTP_400_BAD_REQUEST,
    SignatureMismatch: status.HTTP_400_BAD_REQUEST,
    SizeExceeded: status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    NotFound: status.HTTP_404_NOT_FOUND,
    BackendUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    storage = StorageService(settings)
    try:
        await storage.verify_bucket()
    except FileGateError as exc:
        logger.error("Cannot access storage bucket '%s': %s", storage.bucket, exc.message)
        raise ConfigurationError(
            f"Storage bucket verification failed: {exc.message}",
            backend_code=exc.backend_code,
            operation="head_bucket",
            original=exc,
        ) from exc
    logger.info("Storage bucket '%s' is accessible", storage.bucket)

    app.state.file_service = FileService(storage, settings=settings)
    yield


async def handle_file_error(request: Request, exc: FileGateError) -> JSONResponse:
    status_code = ERROR_STATUS_CODES.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error(
            "%s %s failed: %s [%s]",
            request.method,
            request.url.path,
            exc.code,
            exc.backend_code,
        )
    body = ErrorResponse(error=exc.code, message=exc.message)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)
    app = FastAPI(
        debug=settings.debug,
        title="Files Service API",
        description="File uploads and signed delivery on S3-compatible storage",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(FileGateError, handle_file_error)
    app.include_router(files_router.router)

    return app


app = create_app()
