"""Client for photos table operations."""

from typing import Optional, Dict, Any

from core.logging import get_logger
from models.domain.photo import Photo, ProcessingStatus

logger = get_logger(__name__)


def _row_to_photo(row: Dict[str, Any]) -> Photo:
    return Photo(**row)


class PhotosClient:
    """Handles photo records and their detection state."""

    async def create_photo(self, storage_key: str, filename: Optional[str] = None, conn=None) -> Photo:
        row = await self.fetchone(
            """
            INSERT INTO photos (storage_key, filename)
            VALUES ($1, $2)
            RETURNING *
            """,
            storage_key,
            filename,
            conn=conn,
        )
        logger.info(f"[PhotosClient] Registered photo {row['id']} ({storage_key})")
        return _row_to_photo(row)

    async def get_photo(self, photo_id: int, conn=None, for_update: bool = False) -> Optional[Photo]:
        query = "SELECT * FROM photos WHERE id = $1"
        if for_update:
            query += " FOR UPDATE"
        row = await self.fetchone(query, photo_id, conn=conn)
        return _row_to_photo(row) if row else None

    async def set_processing_status(self, photo_id: int, status: ProcessingStatus, conn=None) -> None:
        await self.execute(
            "UPDATE photos SET processing_status = $2, updated_at = NOW() WHERE id = $1",
            photo_id,
            status.value,
            conn=conn,
        )

    async def record_processing_failure(self, photo_id: int, error: str, conn=None) -> int:
        """Count one failed detection attempt. Returns the new attempt total."""
        return await self.fetchval(
            """
            UPDATE photos
            SET processing_attempts = processing_attempts + 1,
                last_error = $2,
                updated_at = NOW()
            WHERE id = $1
            RETURNING processing_attempts
            """,
            photo_id,
            error,
            conn=conn,
        )

    async def complete_detection(self, photo_id: int, face_count: int, conn=None) -> Photo:
        row = await self.fetchone(
            """
            UPDATE photos
            SET processing_status = 'completed',
                face_count = $2,
                last_error = NULL,
                updated_at = NOW()
            WHERE id = $1
            RETURNING *
            """,
            photo_id,
            face_count,
            conn=conn,
        )
        return _row_to_photo(row)

    async def mark_detection_failed(self, photo_id: int, error: str, conn=None) -> Photo:
        row = await self.fetchone(
            """
            UPDATE photos
            SET processing_status = 'failed',
                last_error = $2,
                updated_at = NOW()
            WHERE id = $1
            RETURNING *
            """,
            photo_id,
            error,
            conn=conn,
        )
        return _row_to_photo(row)

    async def delete_photo(self, photo_id: int, conn=None) -> int:
        status = await self.execute("DELETE FROM photos WHERE id = $1", photo_id, conn=conn)
        return self.affected_rows(status)
