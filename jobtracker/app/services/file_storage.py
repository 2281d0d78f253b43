"""
File storage service for resume blobs.

The resume lifecycle only talks to the FileStorage interface; the backend is
chosen by settings.file_storage_type (local disk or S3). Storage paths are
opaque handles: a relative path under upload_dir for local disk, an object key
for S3.
"""
import secrets
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field

from jobtracker.app.core.config import settings
from jobtracker.app.core.logging_config import get_logger

logger = get_logger("services.file_storage")


class StorageResult(BaseModel):
    success: bool
    storage_path: str | None = None
    file_size: int | None = None
    errors: list[str] = Field(default_factory=list)


class FileStats(BaseModel):
    size: int
    modified_time: datetime


def build_object_name(owner_id: int, resume_id: int, file_name: str) -> str:
    """owner/resume/<millis>_<random>_<file_name> - unique per upload, scoped per owner."""
    stamp = int(time.time() * 1000)
    return f"{owner_id}/{resume_id}/{stamp}_{secrets.token_hex(4)}_{file_name}"


class FileStorage(ABC):
    """Durable blob store used by the resume lifecycle."""

    @abstractmethod
    def upload(
        self,
        file_bytes: bytes,
        owner_id: int,
        resume_id: int,
        file_name: str,
        mime_type: str = "application/octet-stream",
    ) -> StorageResult:
        """Store bytes. Never raises for backend failures; returns success=False instead."""

    @abstractmethod
    def delete(self, storage_path: str) -> bool:
        """Remove a stored file. True when deleted or already absent."""

    @abstractmethod
    def file_exists(self, storage_path: str) -> bool:
        ...

    @abstractmethod
    def get_file_stats(self, storage_path: str) -> FileStats | None:
        ...

    @abstractmethod
    def get_public_url(self, storage_path: str) -> str:
        ...

    @abstractmethod
    def read(self, storage_path: str) -> bytes | None:
        ...


class LocalFileStorage(FileStorage):
    """Stores files on local disk under base_dir/<owner>/<resume>/."""

    def __init__(self, base_dir: str | Path | None = None, base_url: str | None = None):
        self.base_dir = Path(base_dir or settings.upload_dir).resolve()
        self.base_url = (base_url if base_url is not None else settings.file_base_url).rstrip("/")

    def _resolve(self, storage_path: str) -> Path | None:
        """Absolute path for a handle, or None when it escapes base_dir."""
        if not storage_path:
            return None
        resolved = (self.base_dir / storage_path).resolve()
        if resolved != self.base_dir and self.base_dir not in resolved.parents:
            logger.warning(
                "Rejected storage path outside upload directory storage_path=%s base_dir=%s",
                storage_path,
                self.base_dir,
            )
            return None
        return resolved

    def upload(
        self,
        file_bytes: bytes,
        owner_id: int,
        resume_id: int,
        file_name: str,
        mime_type: str = "application/octet-stream",
    ) -> StorageResult:
        storage_path = build_object_name(owner_id, resume_id, file_name)
        target = self._resolve(storage_path)
        if target is None:
            return StorageResult(success=False, errors=["Invalid storage path"])

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(file_bytes)
            written = target.stat().st_size
        except OSError as e:
            logger.error(
                "Local upload failed user_id=%s resume_id=%s storage_path=%s error=%s",
                owner_id,
                resume_id,
                storage_path,
                e,
            )
            return StorageResult(success=False, errors=[f"Upload failed: {e}"])

        if written != len(file_bytes):
            logger.error(
                "Local upload size mismatch user_id=%s resume_id=%s expected=%d written=%d",
                owner_id,
                resume_id,
                len(file_bytes),
                written,
            )
            self.delete(storage_path)
            return StorageResult(success=False, errors=["File size mismatch after upload"])

        logger.info(
            "Local upload success user_id=%s resume_id=%s storage_path=%s size_bytes=%d mime_type=%s",
            owner_id,
            resume_id,
            storage_path,
            written,
            mime_type,
        )
        return StorageResult(success=True, storage_path=storage_path, file_size=written)

    def delete(self, storage_path: str) -> bool:
        target = self._resolve(storage_path)
        if target is None:
            return False
        try:
            target.unlink()
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.warning("Local delete failed storage_path=%s error=%s", storage_path, e)
            return False
        logger.info("Local delete success storage_path=%s", storage_path)
        return True

    def file_exists(self, storage_path: str) -> bool:
        target = self._resolve(storage_path)
        return bool(target and target.is_file())

    def get_file_stats(self, storage_path: str) -> FileStats | None:
        target = self._resolve(storage_path)
        if target is None:
            return None
        try:
            st = target.stat()
        except OSError as e:
            logger.warning("Failed to get file info storage_path=%s error=%s", storage_path, e)
            return None
        return FileStats(
            size=st.st_size,
            modified_time=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
        )

    def get_public_url(self, storage_path: str) -> str:
        if not storage_path:
            return ""
        return f"{self.base_url}/{storage_path}"

    def read(self, storage_path: str) -> bytes | None:
        target = self._resolve(storage_path)
        if target is None or not target.is_file():
            return None
        try:
            return target.read_bytes()
        except OSError as e:
            logger.warning("Local read failed storage_path=%s error=%s", storage_path, e)
            return None


def get_file_storage() -> FileStorage:
    """Create the storage backend configured by FILE_STORAGE_TYPE."""
    storage_type = (settings.file_storage_type or "local").strip().lower()
    if storage_type in ("s3", "cloud"):
        from jobtracker.app.services.s3_service import S3FileStorage

        return S3FileStorage()
    return LocalFileStorage()
