"""
Vidtube Media Storage — uploads to, and purges from, the MinIO media bucket.

Uploads are spooled to a temp file first (the request body may be larger
than memory), probed for duration with ffprobe when they are videos, then
pushed with ``fput_object``. The blocking MinIO client runs in the default
executor so the event loop stays free.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
import subprocess
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from fastapi import UploadFile
from minio import Minio
from minio.error import MinioException

from vidtube.core.config import get_settings
from vidtube.core.exceptions import MediaStorageError
from vidtube.models.models import MediaKind

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass(frozen=True)
class UploadResult:
    url: str
    public_id: str
    duration: float = 0.0


class MediaStorage(Protocol):
    async def upload(self, upload: UploadFile, kind: MediaKind, folder: str) -> UploadResult: ...

    async def delete(self, public_id: str) -> None: ...


def probe_duration(path: Path) -> float:
    """Container duration in seconds via ffprobe; 0.0 when it cannot be read."""
    try:
        probe_out = subprocess.run(
            ["ffprobe", "-v", "quiet", "-print_format", "json", "-show_format", str(path)],
            capture_output=True, text=True, timeout=30,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"ffprobe skipped: {e}")
        return 0.0
    if probe_out.returncode != 0:
        return 0.0
    try:
        return float(json.loads(probe_out.stdout).get("format", {}).get("duration") or 0.0)
    except (ValueError, TypeError):
        return 0.0


class MinioMediaStorage:
    """MinIO-backed implementation of ``MediaStorage``."""

    def __init__(self):
        self._client: Optional[Minio] = None
        self.bucket_name = settings.minio_bucket

    @property
    def client(self) -> Minio:
        if self._client is None:
            self._client = Minio(
                settings.minio_endpoint,
                access_key=settings.minio_access_key,
                secret_key=settings.minio_secret_key,
                secure=settings.minio_secure,
            )
        return self._client

    def public_url(self, public_id: str) -> str:
        base = settings.media_public_base_url
        if not base:
            scheme = "https" if settings.minio_secure else "http"
            base = f"{scheme}://{settings.minio_endpoint}"
        return f"{base.rstrip('/')}/{self.bucket_name}/{public_id}"

    # ── Sync primitives (worker side) ────────────────────────────────────

    def _ensure_bucket(self) -> None:
        if not self.client.bucket_exists(self.bucket_name):
            self.client.make_bucket(self.bucket_name)

    def put_file_sync(self, path: Path, public_id: str, content_type: str) -> None:
        try:
            self._ensure_bucket()
            self.client.fput_object(self.bucket_name, public_id, str(path), content_type=content_type)
        except MinioException as e:
            logger.error(f"MinIO upload failed for {public_id}: {e}")
            raise MediaStorageError("Error while uploading media") from e

    def delete_sync(self, public_id: str) -> None:
        try:
            self.client.remove_object(self.bucket_name, public_id)
        except MinioException as e:
            logger.error(f"MinIO delete failed for {public_id}: {e}")
            raise MediaStorageError("Error while deleting media") from e

    # ── Async API ────────────────────────────────────────────────────────

    async def upload(self, upload: UploadFile, kind: MediaKind, folder: str) -> UploadResult:
        suffix = Path(upload.filename or "").suffix.lower()
        public_id = f"{folder}/{uuid.uuid4().hex}{suffix}"
        content_type = upload.content_type or "application/octet-stream"

        tmp_path = await spool_upload(upload)
        loop = asyncio.get_running_loop()
        try:
            duration = 0.0
            if kind is MediaKind.VIDEO:
                duration = await loop.run_in_executor(None, probe_duration, tmp_path)
            await loop.run_in_executor(None, self.put_file_sync, tmp_path, public_id, content_type)
        finally:
            tmp_path.unlink(missing_ok=True)

        logger.info(f"Stored {kind.value} {public_id}")
        return UploadResult(url=self.public_url(public_id), public_id=public_id, duration=duration)

    async def delete(self, public_id: str) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.delete_sync, public_id)


async def spool_upload(upload: UploadFile) -> Path:
    """Copy an incoming upload to a local temp file and return its path."""
    os.makedirs(settings.upload_tmp_dir, exist_ok=True)
    suffix = Path(upload.filename or "").suffix
    fd, name = tempfile.mkstemp(prefix="vidtube_", suffix=suffix, dir=settings.upload_tmp_dir)
    await upload.seek(0)
    with os.fdopen(fd, "wb") as out:
        await asyncio.get_running_loop().run_in_executor(None, shutil.copyfileobj, upload.file, out)
    return Path(name)


media_storage = MinioMediaStorage()


def get_media_storage() -> MediaStorage:
    """FastAPI dependency; overridden in tests."""
    return media_storage
