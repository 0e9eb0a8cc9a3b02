"""Translate botocore failures into the pipeline's error taxonomy.

This is the only module that inspects vendor exception types or S3 error
codes; everything above it deals in :mod:`filegate.core.errors`.
"""

import logging
from typing import Final

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
    ReadTimeoutError,
)

from filegate.core.errors import (
    BackendUnavailable,
    ConfigurationError,
    FileGateError,
    NotFound,
    SizeExceeded,
)

logger = logging.getLogger(__name__)

_ERRORS_BY_CODE: Final[dict[str, tuple[type[FileGateError], str]]] = {
    "NoSuchKey": (NotFound, "File not found in storage"),
    "NotFound": (NotFound, "File not found in storage"),
    "404": (NotFound, "File not found in storage"),
    "NoSuchBucket": (ConfigurationError, "Storage bucket not found"),
    "AccessDenied": (ConfigurationError, "Access denied to storage resource"),
    "403": (ConfigurationError, "Access denied to storage resource"),
    "InvalidAccessKeyId": (ConfigurationError, "Invalid storage credentials"),
    "SignatureDoesNotMatch": (ConfigurationError, "Invalid storage signature"),
    "EntityTooLarge": (SizeExceeded, "File is too large"),
    "RequestTimeout": (BackendUnavailable, "Storage request timed out"),
    "ServiceUnavailable": (BackendUnavailable, "Storage service temporarily unavailable"),
    "503": (BackendUnavailable, "Storage service temporarily unavailable"),
    "InternalError": (BackendUnavailable, "Storage internal error"),
    "500": (BackendUnavailable, "Storage internal error"),
    "SlowDown": (BackendUnavailable, "Too many storage requests, please slow down"),
    "Throttling": (BackendUnavailable, "Too many storage requests, please slow down"),
}


def _client_error_code(exc: ClientError) -> tuple[str, int | None]:
    error = exc.response.get("Error", {})
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return str(error.get("Code") or status or "Unknown"), status


def translate_backend_error(exc: Exception, operation: str) -> FileGateError:
    if isinstance(exc, FileGateError):
        return exc

    if isinstance(exc, ClientError):
        code, status = _client_error_code(exc)
        error_cls, message = _ERRORS_BY_CODE.get(code, (None, None))
        if error_cls is None:
            if status is not None and status >= 500:
                error_cls, message = BackendUnavailable, "Storage service temporarily unavailable"
            else:
                error_cls, message = BackendUnavailable, f"Storage {operation} operation failed"
    elif isinstance(exc, (NoCredentialsError, PartialCredentialsError)):
        code = type(exc).__name__
        error_cls, message = ConfigurationError, "Storage credentials are missing or incomplete"
    elif isinstance(exc, (ConnectTimeoutError, ReadTimeoutError)):
        code = type(exc).__name__
        error_cls, message = BackendUnavailable, "Storage connection timed out"
    elif isinstance(exc, (EndpointConnectionError, ConnectionClosedError)):
        code = type(exc).__name__
        error_cls, message = BackendUnavailable, "Cannot connect to storage service"
    elif isinstance(exc, (BotoCoreError, OSError)):
        code = type(exc).__name__
        error_cls, message = BackendUnavailable, f"Storage {operation} operation failed"
    else:
        raise TypeError(f"Cannot translate {type(exc).__name__} as a backend error") from exc

    log = logger.info if error_cls is NotFound else logger.error
    log("Storage error [%s] during %s: %s", code, operation, exc)
    return error_cls(message, backend_code=code, operation=operation, original=exc)
