"""
MinIO Storage Service.
Reads and deletes photo objects in MinIO S3-compatible storage.
"""

from typing import Optional

from minio import Minio
from minio.error import S3Error

from core.config import settings
from core.exceptions import TerminalExternalError, TransientExternalError
from core.logging import get_logger

logger = get_logger(__name__)

MISSING_OBJECT_CODES = {"NoSuchKey", "NoSuchBucket", "NoSuchObject"}


class MinioStorage:
    """MinIO storage service for photo objects; keys are object names in one bucket."""

    def __init__(self, client: Optional[Minio] = None, bucket: Optional[str] = None):
        self.bucket = bucket or settings.minio_bucket
        self.client = client or Minio(
            endpoint=settings.minio_endpoint,
            access_key=settings.minio_access_key,
            secret_key=settings.minio_secret_key,
            secure=settings.minio_secure,
        )
        logger.info(f"MinIO storage initialized: {settings.minio_endpoint}/{self.bucket}")

    def read(self, key: str) -> bytes:
        """
        Download an object.

        Raises:
            TerminalExternalError: the object or bucket does not exist
            TransientExternalError: any other storage failure
        """
        response = None
        try:
            response = self.client.get_object(bucket_name=self.bucket, object_name=key)
            data = response.read()
        except S3Error as e:
            if e.code in MISSING_OBJECT_CODES:
                raise TerminalExternalError(f"Image '{key}' not found in storage", operation="read") from e
            logger.warning(f"MinIO read error for {key}: {e}")
            raise TransientExternalError(f"Storage read failed: {e}", operation="read") from e
        except Exception as e:
            logger.warning(f"MinIO read error for {key}: {e}")
            raise TransientExternalError(f"Storage unreachable: {e}", operation="read") from e
        finally:
            if response is not None:
                response.close()
                response.release_conn()

        logger.debug(f"Read {key} ({len(data)} bytes)")
        return data

    def delete(self, key: str) -> bool:
        """
        Delete an object.

        Returns:
            True if deleted, False otherwise (failures are logged, not raised)
        """
        try:
            self.client.remove_object(bucket_name=self.bucket, object_name=key)
        except S3Error as e:
            logger.warning(f"MinIO delete error for {key}: {e}")
            return False

        logger.info(f"Deleted from {self.bucket}: {key}")
        return True


# Singleton instance
_minio_storage: Optional[MinioStorage] = None


def get_minio_storage() -> MinioStorage:
    """Get singleton MinIO storage instance."""
    global _minio_storage
    if _minio_storage is None:
        _minio_storage = MinioStorage()
    return _minio_storage
