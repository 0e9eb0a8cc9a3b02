import importlib
import io
import os
import sys
from collections.abc import AsyncIterator, Iterable
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from botocore.exceptions import ClientError
from httpx import ASGITransport, AsyncClient

# Ensure project root is on sys.path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ["ENV"] = "test"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-that-is-long-enough-32"
os.environ["S3_BUCKET"] = "test-bucket"
os.environ["S3_ACCESS_KEY"] = "test"
os.environ["S3_SECRET_KEY"] = "test"
os.environ["S3_REGION"] = "us-east-1"
os.environ["S3_RETRY_BACKOFF"] = "0"

from filegate.core.config import Settings, get_settings
from filegate.core.security import create_access_token
from filegate.services.files import FileService
from filegate.services.storage import StorageService


def client_error(code: str, status: int, operation: str = "Operation") -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": f"{code} from backend"},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class FakeBody:
    def __init__(self, data: bytes) -> None:
        self._buffer = io.BytesIO(data)
        self.closed = False

    def read(self, amt: int | None = None) -> bytes:
        return self._buffer.read(amt)

    def close(self) -> None:
        self.closed = True


class FakeS3Client:
    """Minimal in-memory stand-in for a boto3 S3 client."""

    def __init__(self, bucket: str = "test-bucket") -> None:
        self.bucket = bucket
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.multipart: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.failures: dict[str, list[Exception]] = {}
        self._next_upload = 0
        self._next_signature = 0

    def fail(self, method: str, *errors: Exception) -> None:
        self.failures.setdefault(method, []).extend(errors)

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def _record(self, method: str, params: dict[str, Any]) -> None:
        self.calls.append((method, params))
        pending = self.failures.get(method)
        if pending:
            raise pending.pop(0)

    def _check_bucket(self, bucket: str) -> None:
        if bucket != self.bucket:
            raise client_error("NoSuchBucket", 404)

    def head_bucket(self, **params: Any) -> dict[str, Any]:
        self._record("head_bucket", params)
        self._check_bucket(params["Bucket"])
        return {}

    def head_object(self, **params: Any) -> dict[str, Any]:
        self._record("head_object", params)
        self._check_bucket(params["Bucket"])
        if params["Key"] not in self.objects:
            raise client_error("404", 404, "HeadObject")
        data, content_type = self.objects[params["Key"]]
        return {"ContentLength": len(data), "ContentType": content_type}

    def get_object(self, **params: Any) -> dict[str, Any]:
        self._record("get_object", params)
        if params["Key"] not in self.objects:
            raise client_error("NoSuchKey", 404, "GetObject")
        data, content_type = self.objects[params["Key"]]
        return {"Body": FakeBody(data), "ContentLength": len(data), "ContentType": content_type}

    def put_object(self, **params: Any) -> dict[str, Any]:
        self._record("put_object", params)
        self.objects[params["Key"]] = (bytes(params["Body"]), params.get("ContentType", ""))
        return {"ETag": '"single"'}

    def create_multipart_upload(self, **params: Any) -> dict[str, Any]:
        self._record("create_multipart_upload", params)
        self._next_upload += 1
        upload_id = f"upload-{self._next_upload}"
        self.multipart[upload_id] = {
            "key": params["Key"],
            "content_type": params.get("ContentType", ""),
            "parts": {},
        }
        return {"UploadId": upload_id}

    def upload_part(self, **params: Any) -> dict[str, Any]:
        self._record("upload_part", {k: v for k, v in params.items() if k != "Body"})
        upload = self.multipart[params["UploadId"]]
        upload["parts"][params["PartNumber"]] = bytes(params["Body"])
        return {"ETag": f'"etag-{params["PartNumber"]}"'}

    def complete_multipart_upload(self, **params: Any) -> dict[str, Any]:
        self._record("complete_multipart_upload", params)
        upload = self.multipart.pop(params["UploadId"])
        numbers = [part["PartNumber"] for part in params["MultipartUpload"]["Parts"]]
        data = b"".join(upload["parts"][number] for number in numbers)
        self.objects[upload["key"]] = (data, upload["content_type"])
        return {}

    def abort_multipart_upload(self, **params: Any) -> dict[str, Any]:
        self._record("abort_multipart_upload", params)
        self.multipart.pop(params["UploadId"], None)
        return {}

    def delete_object(self, **params: Any) -> dict[str, Any]:
        self._record("delete_object", params)
        self.objects.pop(params["Key"], None)
        return {}

    def generate_presigned_url(self, **params: Any) -> str:
        self._record("generate_presigned_url", params)
        self._next_signature += 1
        method = params["ClientMethod"]
        key = params["Params"]["Key"]
        return (
            f"https://s3.test/{self.bucket}/{key}"
            f"?method={method}&expires={params['ExpiresIn']}&sig={self._next_signature}"
        )


async def iter_chunks(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


def make_settings(**overrides: Any) -> Settings:
    return get_settings().model_copy(update=overrides)


def bearer(role: str = "operator", subject: str = "user-1") -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(subject, role)}"}


@pytest.fixture(scope="session", autouse=True)
def configure_environment():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def fake_s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def storage(settings: Settings, fake_s3: FakeS3Client) -> StorageService:
    return StorageService(settings, client=fake_s3)


@pytest.fixture
def file_service(storage: StorageService) -> FileService:
    return FileService(storage)


@pytest.fixture(scope="session")
def app_instance(configure_environment):
    from filegate import main as app_module

    importlib.reload(app_module)
    return app_module.app


@pytest_asyncio.fixture
async def client(app_instance, file_service):
    # ASGITransport does not run the lifespan, so wire the service directly.
    app_instance.state.file_service = file_service
    transport = ASGITransport(app=app_instance)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
