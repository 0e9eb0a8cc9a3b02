from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Final

from filegate.core.config import MIB
from filegate.core.errors import (
    BlockedExtension,
    SignatureMismatch,
    SizeExceeded,
    UnsupportedType,
)

DEFAULT_MAX_FILE_SIZE: Final[int] = 50 * MIB

ALLOWED_MIME_TYPES: Final[frozenset[str]] = frozenset(
    {
        # images
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/svg+xml",
        # audio
        "audio/mpeg",
        "audio/mp3",
        "audio/wav",
        "audio/ogg",
        "audio/webm",
        # documents
        "application/pdf",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "text/plain",
        "text/csv",
        # archives
        "application/zip",
        "application/x-rar-compressed",
    }
)

BLOCKED_EXTENSIONS: Final[frozenset[str]] = frozenset(
    {
        ".exe",
        ".bat",
        ".sh",
        ".cmd",
        ".com",
        ".pif",
        ".scr",
        ".vbs",
        ".js",
        ".jar",
        ".app",
        ".msi",
        ".dll",
        ".so",
        ".dylib",
    }
)

# Only formats with a fixed magic header are listed. Office XML, text and
# audio types are accepted on the declared MIME type alone.
FILE_SIGNATURES: Final[dict[str, bytes]] = {
    "image/jpeg": b"\xff\xd8\xff",
    "image/png": b"\x89PNG\r\n\x1a\n",
    "image/gif": b"GIF8",
    "application/pdf": b"%PDF",
    "application/zip": b"PK\x03\x04",
}


@dataclass(frozen=True, slots=True)
class Accepted:
    mime_type: str
    extension: str
    signature_checked: bool


def normalize_mime(declared_mime: str | None) -> str:
    if not declared_mime:
        return ""
    return declared_mime.split(";", 1)[0].strip().lower()


def file_extension(filename: str) -> str:
    return PurePosixPath(filename.replace("\\", "/")).suffix.lower()


def validate_mime_type(declared_mime: str | None) -> str:
    mime_type = normalize_mime(declared_mime)
    if mime_type not in ALLOWED_MIME_TYPES:
        raise UnsupportedType(f"File type '{mime_type or 'unknown'}' is not allowed")
    return mime_type


def validate_extension(filename: str) -> str:
    extension = file_extension(filename)
    if extension in BLOCKED_EXTENSIONS:
        raise BlockedExtension(f"File extension '{extension}' is blocked for security reasons")
    return extension


def verify_signature(preview: bytes, mime_type: str) -> bool:
    signature = FILE_SIGNATURES.get(mime_type)
    if signature is None:
        return False
    if not preview.startswith(signature):
        raise SignatureMismatch(
            "File content does not match declared type. Possible file type spoofing detected."
        )
    return True


def validate_preview_size(size: int, max_size: int = DEFAULT_MAX_FILE_SIZE) -> None:
    if size > max_size:
        raise SizeExceeded(
            f"File size {size} bytes exceeds maximum allowed size {max_size} bytes "
            f"({round(max_size / MIB)}MB)"
        )


def validate(
    declared_mime: str | None,
    declared_filename: str,
    preview: bytes,
    max_size: int = DEFAULT_MAX_FILE_SIZE,
) -> Accepted:
    """Run every upload check in order, raising on the first failure.

    The MIME allow-list decides acceptance; the extension deny-list is an
    extra hard stop and never accepts anything on its own. Signatures are
    compared as an exact prefix of ``preview``.
    """
    mime_type = validate_mime_type(declared_mime)
    extension = validate_extension(declared_filename)
    signature_checked = verify_signature(preview, mime_type)
    validate_preview_size(len(preview), max_size)
    return Accepted(
        mime_type=mime_type,
        extension=extension,
        signature_checked=signature_checked,
    )
