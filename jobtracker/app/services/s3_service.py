"""
S3 storage backend for resume files.
Stores objects under {s3_key_prefix}/{user_id}/{resume_id}/{stamp}_{rand}_{file_name}.
"""
import boto3
from botocore.exceptions import BotoCoreError, ClientError

from jobtracker.app.core.config import settings
from jobtracker.app.core.logging_config import get_logger
from jobtracker.app.services.file_storage import FileStats, FileStorage, StorageResult, build_object_name

logger = get_logger("services.s3")


def _get_s3_client():
    """Get configured S3 client."""
    if not settings.aws_access_key_id or not settings.aws_secret_access_key:
        raise ValueError("AWS credentials not configured (AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY)")
    return boto3.client(
        "s3",
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        region_name=settings.aws_region,
    )


def _error_code(e: Exception) -> str:
    if isinstance(e, ClientError):
        return e.response.get("Error", {}).get("Code", "")
    return type(e).__name__


class S3FileStorage(FileStorage):
    def __init__(self, client=None, bucket: str | None = None, key_prefix: str | None = None):
        self._client = client
        self.bucket = bucket or settings.aws_bucket_name
        self.key_prefix = (key_prefix if key_prefix is not None else settings.s3_key_prefix).strip("/")

    @property
    def client(self):
        if self._client is None:
            self._client = _get_s3_client()
        return self._client

    def _key(self, owner_id: int, resume_id: int, file_name: str) -> str:
        name = build_object_name(owner_id, resume_id, file_name)
        return f"{self.key_prefix}/{name}" if self.key_prefix else name

    def upload(
        self,
        file_bytes: bytes,
        owner_id: int,
        resume_id: int,
        file_name: str,
        mime_type: str = "application/octet-stream",
    ) -> StorageResult:
        key = self._key(owner_id, resume_id, file_name)
        logger.info(
            "S3 upload started bucket=%s key=%s user_id=%s resume_id=%s size_bytes=%d",
            self.bucket,
            key,
            owner_id,
            resume_id,
            len(file_bytes),
        )
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=file_bytes,
                ContentType=mime_type,
            )
        except (ClientError, BotoCoreError, ValueError) as e:
            logger.error(
                "S3 upload failed bucket=%s key=%s user_id=%s resume_id=%s error_code=%s error_message=%s",
                self.bucket,
                key,
                owner_id,
                resume_id,
                _error_code(e),
                e,
            )
            return StorageResult(success=False, errors=[f"S3 upload failed - {_error_code(e)}"])

        logger.info("S3 upload success bucket=%s key=%s", self.bucket, key)
        return StorageResult(success=True, storage_path=key, file_size=len(file_bytes))

    def delete(self, storage_path: str) -> bool:
        """Delete object by key. Returns True on success, False on error."""
        if not storage_path:
            return False
        try:
            self.client.delete_object(Bucket=self.bucket, Key=storage_path)
        except (ClientError, BotoCoreError, ValueError) as e:
            logger.warning("S3 delete failed key=%s error=%s", storage_path, e)
            return False
        logger.info("S3 delete success bucket=%s key=%s", self.bucket, storage_path)
        return True

    def _head(self, storage_path: str) -> dict | None:
        if not storage_path:
            return None
        try:
            return self.client.head_object(Bucket=self.bucket, Key=storage_path)
        except ClientError as e:
            if _error_code(e) not in ("404", "NoSuchKey", "NotFound"):
                logger.warning("S3 head failed key=%s error=%s", storage_path, e)
            return None
        except (BotoCoreError, ValueError) as e:
            logger.warning("S3 head failed key=%s error=%s", storage_path, e)
            return None

    def file_exists(self, storage_path: str) -> bool:
        return self._head(storage_path) is not None

    def get_file_stats(self, storage_path: str) -> FileStats | None:
        head = self._head(storage_path)
        if head is None:
            return None
        return FileStats(size=head.get("ContentLength", 0), modified_time=head["LastModified"])

    def get_public_url(self, storage_path: str) -> str:
        """Presigned GET URL; empty string when it cannot be generated."""
        if not storage_path:
            return ""
        try:
            url = self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": storage_path},
                ExpiresIn=settings.s3_presigned_url_expiration,
            )
            return url or ""
        except (ClientError, BotoCoreError, ValueError) as e:
            logger.warning("Presigned URL generation failed key=%s error=%s", storage_path, e)
            return ""

    def read(self, storage_path: str) -> bytes | None:
        if not storage_path:
            return None
        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=storage_path)
            return obj["Body"].read()
        except (ClientError, BotoCoreError, ValueError) as e:
            logger.warning("S3 read failed key=%s error=%s", storage_path, e)
            return None
