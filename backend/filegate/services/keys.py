"""Object key sanitizing and generation.

Every key that reaches the storage backend or the URL cache passes through
:func:`sanitize_key`, whether it came from a caller or was generated here.
"""

import re
import time
from pathlib import PurePosixPath
from typing import Final
from uuid import uuid4

from filegate.core.errors import InvalidKey

MAX_KEY_LENGTH: Final[int] = 500

_KEY_PATTERN: Final = re.compile(r"[A-Za-z0-9_./-]+")
_EXTENSION_PATTERN: Final = re.compile(r"\.[A-Za-z0-9]{1,16}")

DEFAULT_FOLDER: Final[str] = "documents"
_FOLDER_BY_MIME_PREFIX: Final[dict[str, str]] = {
    "image/": "images",
    "audio/": "recordings",
}


def sanitize_key(raw_key: str) -> str:
    if not raw_key:
        raise InvalidKey("File key must not be empty")
    if raw_key.startswith("/"):
        raise InvalidKey("File key must not start with '/'")
    if any(segment == ".." for segment in raw_key.split("/")):
        raise InvalidKey("File key must not contain '..' segments")

    sanitized = raw_key.replace("..", "")
    sanitized = re.sub(r"/+", "/", sanitized).lstrip("/")

    if not sanitized:
        raise InvalidKey("File key must not be empty")
    if len(sanitized) > MAX_KEY_LENGTH:
        raise InvalidKey(f"File key exceeds {MAX_KEY_LENGTH} characters")
    if not _KEY_PATTERN.fullmatch(sanitized):
        raise InvalidKey()
    return sanitized


def sanitize_folder(raw_folder: str) -> str:
    folder = sanitize_key(raw_folder).rstrip("/")
    if not folder or folder == ".":
        raise InvalidKey("Invalid folder name")
    return folder


def folder_for_mime(mime_type: str) -> str:
    normalized = mime_type.lower()
    for prefix, folder in _FOLDER_BY_MIME_PREFIX.items():
        if normalized.startswith(prefix):
            return folder
    return DEFAULT_FOLDER


def safe_extension(filename: str) -> str:
    # Only the final path component counts; client paths are ignored.
    suffix = PurePosixPath(filename.replace("\\", "/")).suffix
    if _EXTENSION_PATTERN.fullmatch(suffix):
        return suffix
    return ""


def generate_object_name(filename: str) -> str:
    timestamp = int(time.time() * 1000)
    token = uuid4().hex[:12]
    return f"{timestamp}-{token}{safe_extension(filename)}"


def build_object_key(folder: str, filename: str) -> str:
    return sanitize_key(f"{sanitize_folder(folder)}/{generate_object_name(filename)}")
