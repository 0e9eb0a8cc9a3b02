from __future__ import annotations

import logging
from collections.abc import AsyncIterable
from dataclasses import dataclass

from filegate.core.config import Settings
from filegate.core.errors import NotFound
from filegate.schemas.identity import Identity
from filegate.services import validation
from filegate.services.keys import (
    build_object_key,
    folder_for_mime,
    sanitize_folder,
    sanitize_key,
)
from filegate.services.storage import ObjectStream, StorageService
from filegate.services.streams import PreviewTee
from filegate.services.transfer import TransferEngine
from filegate.services.url_cache import SignedUrlCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class UploadCandidate:
    filename: str
    mime_type: str
    source: AsyncIterable[bytes]


@dataclass(frozen=True, slots=True)
class UploadResult:
    key: str
    url: str
    size: int
    mime: str
    folder: str
    filename: str


@dataclass(frozen=True, slots=True)
class RetrievalUrl:
    key: str
    url: str
    cache_hit: bool


class FileService:
    """Secure ingestion and delivery pipeline in front of the object store."""

    def __init__(
        self,
        storage: StorageService,
        url_cache: SignedUrlCache | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or storage.settings
        self.storage = storage
        self.url_cache = url_cache or SignedUrlCache(
            max_size=self.settings.url_cache_max_size,
            ttl=self.settings.url_cache_ttl,
            url_ttl=self.settings.presigned_url_ttl,
        )
        self.transfer = TransferEngine(
            storage,
            part_size=self.settings.upload_part_size,
            queue_size=self.settings.upload_queue_size,
        )

    async def upload(
        self,
        identity: Identity,
        folder_hint: str | None,
        filename: str,
        mime_type: str,
        source: AsyncIterable[bytes],
    ) -> UploadResult:
        candidate = UploadCandidate(filename=filename, mime_type=mime_type, source=source)
        folder = sanitize_folder(folder_hint) if folder_hint else None

        tee = PreviewTee(candidate.source, self.settings.preview_size)
        preview = await tee.read_preview()
        accepted = validation.validate(
            candidate.mime_type,
            candidate.filename,
            preview,
            max_size=self.settings.max_file_size,
        )

        folder = folder or folder_for_mime(accepted.mime_type)
        key = build_object_key(folder, candidate.filename)
        result = await self.transfer.upload(
            key,
            tee.stream(),
            accepted.mime_type,
            max_size=self.settings.max_file_size,
        )
        await self.url_cache.invalidate(key)
        url = await self._issue_retrieval_url(key)

        logger.info(
            "File uploaded: %s (%d bytes) by user %s (%s)",
            key,
            result.size,
            identity.subject_id,
            identity.role,
        )
        return UploadResult(
            key=key,
            url=url,
            size=result.size,
            mime=accepted.mime_type,
            folder=folder,
            filename=candidate.filename,
        )

    async def get_retrieval_url(self, raw_key: str) -> RetrievalUrl:
        key = sanitize_key(raw_key)
        cached = await self.url_cache.get(key)
        if cached is not None:
            return RetrievalUrl(key=key, url=cached.url, cache_hit=True)

        epoch = self.url_cache.epoch
        await self.storage.head_object(key)
        url = await self._issue_retrieval_url(key, epoch)
        return RetrievalUrl(key=key, url=url, cache_hit=False)

    async def _issue_retrieval_url(self, key: str, epoch: int | None = None) -> str:
        url = await self.storage.create_presigned_get(key, self.settings.presigned_url_ttl)
        await self.url_cache.set(key, url, epoch)
        logger.debug("Generated download URL for %s", key)
        return url

    async def get_upload_url(self, raw_key: str, content_type: str | None = None) -> str:
        key = sanitize_key(raw_key)
        # A direct upload may replace the content behind this key.
        await self.url_cache.invalidate(key)
        url = await self.storage.create_presigned_put(key, content_type, self.settings.presigned_url_ttl)
        logger.debug("Generated upload URL for %s", key)
        return url

    async def create_upload_url(
        self,
        filename: str,
        content_type: str | None = None,
        folder_hint: str | None = None,
    ) -> tuple[str, str]:
        folder = folder_hint or folder_for_mime(content_type or "")
        key = build_object_key(folder, filename)
        url = await self.get_upload_url(key, content_type)
        return key, url

    async def delete(self, raw_key: str) -> None:
        key = sanitize_key(raw_key)
        try:
            await self.storage.head_object(key)
        except NotFound:
            await self.url_cache.invalidate(key)
            raise
        await self.storage.delete_object(key)
        await self.url_cache.invalidate(key)
        logger.info("File deleted from storage: %s", key)

    async def open_download(self, raw_key: str) -> ObjectStream:
        key = sanitize_key(raw_key)
        stream = await self.storage.open_object(key)
        logger.info("File stream retrieved: %s", key)
        return stream

    async def health_check(self) -> bool:
        return await self.storage.health_check()
