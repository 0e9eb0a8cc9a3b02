from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from filegate.core.config import MIB
from filegate.core.errors import FileGateError, SizeExceeded

if TYPE_CHECKING:
    from filegate.services.storage import StorageService

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TransferResult:
    key: str
    size: int
    parts: int


class TransferEngine:
    """Streams a byte source into the object store without holding it in memory.

    Bodies that fit in one part are written with a single put. Larger bodies
    use a multipart upload with at most ``queue_size`` parts in flight, so
    memory stays near ``part_size * (queue_size + 1)`` whatever the object
    size.
    """

    def __init__(self, storage: StorageService, part_size: int = 5 * MIB, queue_size: int = 4) -> None:
        if part_size <= 0 or queue_size <= 0:
            raise ValueError("part_size and queue_size must be positive")
        self.storage = storage
        self.part_size = part_size
        self.queue_size = queue_size

    async def upload(
        self,
        key: str,
        source: AsyncIterable[bytes],
        content_type: str,
        max_size: int,
    ) -> TransferResult:
        started = time.monotonic()
        upload = _MultipartUpload(self.storage, key, content_type, self.queue_size)
        buffer = bytearray()
        total = 0

        try:
            async for chunk in source:
                total += len(chunk)
                if total > max_size:
                    raise SizeExceeded(
                        f"File size exceeds maximum allowed size {max_size} bytes"
                    )
                buffer.extend(chunk)
                while len(buffer) >= self.part_size:
                    part = bytes(buffer[: self.part_size])
                    del buffer[: self.part_size]
                    await upload.send_part(part)

            if upload.started:
                if buffer:
                    await upload.send_part(bytes(buffer))
                parts = await upload.complete()
            else:
                await self.storage.put_object(key, bytes(buffer), content_type)
                parts = 1
        except BaseException as exc:
            await upload.abort()
            if isinstance(exc, FileGateError):
                logger.warning("Upload of %s rejected after %d bytes: %s", key, total, exc.code)
            elif isinstance(exc, asyncio.CancelledError):
                logger.warning("Upload of %s cancelled after %d bytes", key, total)
            else:
                logger.exception("Upload of %s failed after %d bytes", key, total)
            raise

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "File uploaded to storage: %s (%d bytes, %d part(s), %dms, %s)",
            key,
            total,
            parts,
            duration_ms,
            content_type,
        )
        return TransferResult(key=key, size=total, parts=parts)


class _MultipartUpload:
    """State of one multipart upload; started lazily on the first full part."""

    def __init__(self, storage: StorageService, key: str, content_type: str, queue_size: int) -> None:
        self.storage = storage
        self.key = key
        self.content_type = content_type
        self.upload_id: str | None = None
        self._slots = asyncio.Semaphore(queue_size)
        self._tasks: list[asyncio.Task[dict[str, Any]]] = []

    @property
    def started(self) -> bool:
        return self.upload_id is not None

    async def send_part(self, data: bytes) -> None:
        if self.upload_id is None:
            self.upload_id = await self.storage.create_multipart_upload(self.key, self.content_type)
            logger.debug("Started multipart upload %s for %s", self.upload_id, self.key)

        self._raise_failed()
        await self._slots.acquire()
        self._raise_failed()
        part_number = len(self._tasks) + 1
        task = asyncio.create_task(
            self._upload_part(self.upload_id, part_number, data),
            name=f"upload_part_{self.key}_{part_number}",
        )
        self._tasks.append(task)

    async def _upload_part(self, upload_id: str, part_number: int, data: bytes) -> dict[str, Any]:
        try:
            etag = await self.storage.upload_part(self.key, upload_id, part_number, data)
            logger.debug("Uploaded part %d of %s (%d bytes)", part_number, self.key, len(data))
            return {"PartNumber": part_number, "ETag": etag}
        finally:
            self._slots.release()

    def _raise_failed(self) -> None:
        for task in self._tasks:
            if task.done() and not task.cancelled() and task.exception() is not None:
                raise task.exception()  # type: ignore[misc]

    async def complete(self) -> int:
        if self.upload_id is None:
            raise RuntimeError(f"Multipart upload for {self.key} was never started")
        parts = await asyncio.gather(*self._tasks)
        await self.storage.complete_multipart_upload(
            self.key,
            self.upload_id,
            sorted(parts, key=lambda part: part["PartNumber"]),
        )
        return len(parts)

    async def abort(self) -> None:
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        if self.upload_id is None:
            return
        upload_id, self.upload_id = self.upload_id, None
        try:
            await self.storage.abort_multipart_upload(self.key, upload_id)
            logger.info("Aborted multipart upload %s for %s", upload_id, self.key)
        except FileGateError:
            logger.exception("Failed to abort multipart upload %s for %s", upload_id, self.key)
