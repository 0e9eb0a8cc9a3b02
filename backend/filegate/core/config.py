from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIB = 1024 * 1024


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        protected_namespaces=(),
    )

    env: Literal["local", "prod", "test"] = Field(default="local", alias="ENV")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"], alias="CORS_ORIGINS")

    jwt_secret_key: str = Field(
        default="secret-key-change-me",
        alias="JWT_SECRET_KEY",
    )
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    delete_roles: list[str] = Field(
        default_factory=lambda: ["director", "callcentre_admin"],
        alias="DELETE_ROLES",
    )

    s3_endpoint: HttpUrl | None = Field(default=None, alias="S3_ENDPOINT_URL")
    s3_access_key: str | None = Field(default=None, alias="S3_ACCESS_KEY")
    s3_secret_key: str | None = Field(default=None, alias="S3_SECRET_KEY")
    s3_region: str | None = Field(default=None, alias="S3_REGION")
    s3_bucket: str = Field(default="filegate-uploads", alias="S3_BUCKET")
    s3_force_path_style: bool = Field(default=False, alias="S3_FORCE_PATH_STYLE")
    s3_connect_timeout: float = Field(default=3.0, alias="S3_CONNECT_TIMEOUT")
    s3_read_timeout: float = Field(default=30.0, alias="S3_READ_TIMEOUT")
    s3_max_pool_connections: int = Field(default=50, alias="S3_MAX_POOL_CONNECTIONS")
    s3_max_attempts: int = Field(default=3, ge=1, alias="S3_MAX_ATTEMPTS")
    s3_retry_backoff: float = Field(default=0.5, ge=0, alias="S3_RETRY_BACKOFF")
    s3_retry_backoff_max: float = Field(default=5.0, ge=0, alias="S3_RETRY_BACKOFF_MAX")

    max_file_size: int = Field(default=50 * MIB, gt=0, alias="MAX_FILE_SIZE")
    upload_part_size: int = Field(default=5 * MIB, gt=0, alias="UPLOAD_PART_SIZE")
    upload_queue_size: int = Field(default=4, ge=1, alias="UPLOAD_QUEUE_SIZE")
    preview_size: int = Field(default=4096, gt=0, alias="PREVIEW_SIZE")

    presigned_url_ttl: int = Field(default=3600, gt=0, alias="PRESIGNED_URL_TTL")
    url_cache_ttl: int = Field(default=3000, gt=0, alias="URL_CACHE_TTL")
    url_cache_max_size: int = Field(default=1000, ge=1, alias="URL_CACHE_MAX_SIZE")

    @model_validator(mode="after")
    def check_consistency(self) -> "Settings":
        if self.url_cache_ttl >= self.presigned_url_ttl:
            raise ValueError("URL_CACHE_TTL must be shorter than PRESIGNED_URL_TTL")
        if self.preview_size > self.max_file_size:
            raise ValueError("PREVIEW_SIZE must not exceed MAX_FILE_SIZE")
        if self.env == "prod" and len(self.jwt_secret_key) < 32:
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters long")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
