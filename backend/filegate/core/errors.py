class FileGateError(Exception):
    """Base class for every error the file pipeline reports to callers."""

    code = "filegate_error"
    retryable = False
    default_message = "File operation failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        backend_code: str | None = None,
        operation: str | None = None,
        original: BaseException | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.backend_code = backend_code
        self.operation = operation
        self.original = original
        super().__init__(self.message)


class InvalidKey(FileGateError):
    code = "invalid_key"
    default_message = "Invalid characters in file key"


class UnsupportedType(FileGateError):
    code = "unsupported_type"
    default_message = "File type is not allowed"


class BlockedExtension(FileGateError):
    code = "blocked_extension"
    default_message = "File extension is blocked for security reasons"


class SignatureMismatch(FileGateError):
    code = "signature_mismatch"
    default_message = "File content does not match declared type"


class SizeExceeded(FileGateError):
    code = "size_exceeded"
    default_message = "File is too large"


class NotFound(FileGateError):
    code = "not_found"
    default_message = "File not found"


class BackendUnavailable(FileGateError):
    code = "backend_unavailable"
    retryable = True
    default_message = "Storage service temporarily unavailable"


class ConfigurationError(FileGateError):
    code = "configuration_error"
    default_message = "Storage backend is misconfigured"
