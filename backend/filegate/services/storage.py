import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any, Final, TypeVar

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from filegate.core.config import Settings, get_settings
from filegate.core.errors import ConfigurationError, FileGateError
from filegate.services.error_translation import translate_backend_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

DOWNLOAD_CHUNK_SIZE: Final[int] = 64 * 1024


@dataclass(slots=True)
class ObjectStream:
    content_type: str
    content_length: int | None
    chunks: AsyncIterator[bytes]


class StorageService:
    """S3-compatible storage backend.

    Built once at startup and shared by every request. Blocking boto3 calls
    run in worker threads; failures leave here already translated.
    """

    def __init__(self, settings: Settings | None = None, client: Any | None = None) -> None:
        self.settings = settings or get_settings()
        self.bucket = self.settings.s3_bucket
        if not self.bucket:
            raise ConfigurationError("S3_BUCKET is not configured")
        if bool(self.settings.s3_access_key) != bool(self.settings.s3_secret_key):
            raise ConfigurationError("S3_ACCESS_KEY and S3_SECRET_KEY must be set together")
        self.client = client if client is not None else self._create_client()

    def _create_client(self) -> Any:
        settings = self.settings
        config = Config(
            signature_version="s3v4",
            connect_timeout=settings.s3_connect_timeout,
            read_timeout=settings.s3_read_timeout,
            max_pool_connections=settings.s3_max_pool_connections,
            # Retries happen in _call so every operation follows one policy.
            retries={"total_max_attempts": 1, "mode": "standard"},
            s3={"addressing_style": "path" if settings.s3_force_path_style else "auto"},
        )
        client_kwargs: dict[str, Any] = {
            "endpoint_url": str(settings.s3_endpoint) if settings.s3_endpoint else None,
            "region_name": settings.s3_region,
            "config": config,
        }
        # Without explicit keys boto3 falls back to its default credential chain.
        if settings.s3_access_key:
            client_kwargs["aws_access_key_id"] = settings.s3_access_key
            client_kwargs["aws_secret_access_key"] = settings.s3_secret_key

        session = boto3.session.Session()
        client = session.client("s3", **client_kwargs)
        logger.info("S3 client initialized for bucket %s", self.bucket)
        return client

    async def _call(
        self,
        operation: str,
        func: Callable[..., T],
        *,
        idempotent: bool = True,
        **params: Any,
    ) -> T:
        max_attempts = self.settings.s3_max_attempts if idempotent else 1
        for attempt in range(1, max_attempts + 1):
            try:
                return await asyncio.to_thread(func, **params)
            except (BotoCoreError, ClientError, OSError) as exc:
                error = translate_backend_error(exc, operation)
                if not error.retryable or attempt >= max_attempts:
                    raise error from exc
                wait_seconds = min(
                    self.settings.s3_retry_backoff * 2 ** (attempt - 1),
                    self.settings.s3_retry_backoff_max,
                )
                logger.warning(
                    "Storage %s failed (attempt %d/%d): %s. Retrying in %ss",
                    operation,
                    attempt,
                    max_attempts,
                    error.backend_code,
                    wait_seconds,
                )
                await asyncio.sleep(wait_seconds)
        raise RuntimeError(f"Storage {operation} did not run")  # pragma: no cover

    async def verify_bucket(self) -> None:
        await self._call("head_bucket", self.client.head_bucket, Bucket=self.bucket)

    async def health_check(self) -> bool:
        try:
            await self.verify_bucket()
        except FileGateError as exc:
            logger.error("Storage health check failed: %s", exc.message)
            return False
        return True

    async def head_object(self, key: str) -> dict[str, Any]:
        return await self._call("head_object", self.client.head_object, Bucket=self.bucket, Key=key)

    async def put_object(self, key: str, data: bytes, content_type: str) -> None:
        await self._call(
            "put_object",
            self.client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
        )

    async def create_multipart_upload(self, key: str, content_type: str) -> str:
        # A retried create could leave an orphaned upload id behind.
        response = await self._call(
            "create_multipart_upload",
            self.client.create_multipart_upload,
            idempotent=False,
            Bucket=self.bucket,
            Key=key,
            ContentType=content_type,
        )
        return response["UploadId"]

    async def upload_part(self, key: str, upload_id: str, part_number: int, data: bytes) -> str:
        response = await self._call(
            "upload_part",
            self.client.upload_part,
            Bucket=self.bucket,
            Key=key,
            UploadId=upload_id,
            PartNumber=part_number,
            Body=data,
        )
        return response["ETag"]

    async def complete_multipart_upload(
        self, key: str, upload_id: str, parts: list[dict[str, Any]]
    ) -> None:
        await self._call(
            "complete_multipart_upload",
            self.client.complete_multipart_upload,
            Bucket=self.bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={"Parts": parts},
        )

    async def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        await self._call(
            "abort_multipart_upload",
            self.client.abort_multipart_upload,
            Bucket=self.bucket,
            Key=key,
            UploadId=upload_id,
        )

    async def delete_object(self, key: str) -> None:
        await self._call("delete_object", self.client.delete_object, Bucket=self.bucket, Key=key)

    async def create_presigned_get(self, key: str, expires_in: int | None = None) -> str:
        return await self._call(
            "presign",
            self.client.generate_presigned_url,
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires_in or self.settings.presigned_url_ttl,
        )

    async def create_presigned_put(
        self,
        key: str,
        content_type: str | None = None,
        expires_in: int | None = None,
    ) -> str:
        params = {"Bucket": self.bucket, "Key": key}
        if content_type:
            params["ContentType"] = content_type
        return await self._call(
            "presign",
            self.client.generate_presigned_url,
            ClientMethod="put_object",
            Params=params,
            ExpiresIn=expires_in or self.settings.presigned_url_ttl,
        )

    async def open_object(self, key: str, chunk_size: int = DOWNLOAD_CHUNK_SIZE) -> ObjectStream:
        response = await self._call("get_object", self.client.get_object, Bucket=self.bucket, Key=key)
        body = response["Body"]

        async def _chunks() -> AsyncIterator[bytes]:
            try:
                while True:
                    try:
                        chunk = await asyncio.to_thread(body.read, chunk_size)
                    except (BotoCoreError, OSError) as exc:
                        raise translate_backend_error(exc, "get_object") from exc
                    if not chunk:
                        break
                    yield chunk
            finally:
                body.close()

        return ObjectStream(
            content_type=response.get("ContentType") or "application/octet-stream",
            content_length=response.get("ContentLength"),
            chunks=_chunks(),
        )
