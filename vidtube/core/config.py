"""
Vidtube Core Settings.

Environment-driven configuration for the API, the relational store, the
session tokens, media storage and the background purge worker.
"""
from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8",
        env_prefix="VIDTUBE_", case_sensitive=False,
    )

    # ── App ──────────────────────────────────────────────────────────────
    app_name: str = "Vidtube"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    api_prefix: str = "/api/v1"
    cors_origins: List[str] = ["http://localhost:3000"]

    # ── Database ─────────────────────────────────────────────────────────
    db_host: str = "postgres"
    db_port: int = 5432
    db_user: str = "vidtube"
    db_password: str = "vidtube_secret"
    db_name: str = "vidtube"
    db_url_override: Optional[str] = None
    db_echo: bool = False

    @property
    def database_url(self) -> str:
        if self.db_url_override:
            return self.db_url_override
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # ── Session tokens ───────────────────────────────────────────────────
    access_token_secret: str = "change-me-access"
    access_token_expiry_minutes: int = 15
    refresh_token_secret: str = "change-me-refresh"
    refresh_token_expiry_days: int = 10
    jwt_algorithm: str = "HS256"

    # Cookies carrying the session pair
    cookie_secure: bool = True
    cookie_samesite: str = "none"

    # ── Pagination ───────────────────────────────────────────────────────
    default_page: int = 1
    default_page_size: int = 10
    max_page_size: int = 100

    # ── MinIO / S3 ───────────────────────────────────────────────────────
    minio_endpoint: str = "minio:9000"
    minio_access_key: str = "vidtube_minio"
    minio_secret_key: str = "vidtube_minio_secret"
    minio_bucket: str = "vidtube-media"
    minio_secure: bool = False
    media_public_base_url: Optional[str] = None
    upload_tmp_dir: str = "/tmp/vidtube-uploads"

    # ── Redis / Celery ───────────────────────────────────────────────────
    celery_broker_url: str = "redis://redis:6379/1"
    celery_result_backend: str = "redis://redis:6379/2"
    celery_task_always_eager: bool = False


@lru_cache()
def get_settings() -> Settings:
    return Settings()
