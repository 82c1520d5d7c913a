"""
Detection Orchestrator.

Fetches a photo's image, asks the recognition service where the faces are and
stores one photo_faces row per face. At the end of an attempt the photo row is
locked and, in a single transaction, its old faces are replaced by the new
ones and it is marked "completed" with the new face_count. A failed attempt
never leaves partial rows behind and a re-triggered run never duplicates them.

Detection failures never escape run_detection: after the retry policy gives up
the photo is marked "failed" with a readable last_error and stays that way
until someone triggers detection again.
"""

import asyncio
from typing import Optional

from core.config import VERSION
from core.exceptions import AppException, ConflictError, PhotoNotFoundError
from core.logging import get_logger
from core.retry import RetryPolicy
from infrastructure.rekognition import RecognitionBackend
from models.domain.face import NewDetectedFace
from models.domain.photo import ProcessingStatus
from models.responses import DetectionResult

logger = get_logger(__name__)


def error_message(exc: BaseException) -> str:
    if isinstance(exc, AppException):
        return exc.message
    return str(exc) or type(exc).__name__



def _refuse_assigned_faces(photo_id: int, faces) -> None:
    assigned = [f.id for f in faces if f.is_assigned]
    if assigned:
        raise ConflictError(
            f"Photo '{photo_id}' has assigned faces; unassign them before re-detecting",
            details={"photo_id": photo_id, "face_ids": assigned},
        )


class DetectionOrchestrator:

    def __init__(self, db, backend: RecognitionBackend, storage, retry_policy: Optional[RetryPolicy] = None):
        self.db = db
        self.backend = backend
        self.storage = storage
        self.retry_policy = retry_policy or RetryPolicy.from_settings()

    async def run_detection(self, photo_id: int, force: bool = False) -> DetectionResult:
        """
        Detect faces in a photo.

        A completed photo is left alone unless force=True. Every run replaces
        whatever faces the photo already has, so re-triggering a photo whose
        last run failed half-way never duplicates rows; a photo with assigned
        faces is refused instead.

        Raises:
            PhotoNotFoundError: no such photo
            ConflictError: the photo has assigned faces
        """
        photo = await self.db.get_photo(photo_id)
        if photo is None:
            raise PhotoNotFoundError(photo_id)

        if photo.processing_status == ProcessingStatus.COMPLETED and not force:
            logger.info(f"[v{VERSION}] [Detection] Photo {photo_id} already processed, skipping")
            return self._skipped(photo)

        _refuse_assigned_faces(photo_id, await self.db.get_photo_faces(photo_id))

        await self.db.set_processing_status(photo_id, ProcessingStatus.PROCESSING)
        logger.info(f"[v{VERSION}] [Detection] Photo {photo_id}: started (force={force})")

        attempts = 0

        async def attempt(n: int) -> Optional[int]:
            nonlocal attempts
            attempts = n
            image_bytes = await asyncio.to_thread(self.storage.read, photo.storage_key)
            regions = await asyncio.to_thread(self.backend.detect, image_bytes)

            faces = [
                NewDetectedFace(
                    bounding_box=region.bounding_box,
                    quality_score=region.quality.quality_score(),
                    detection_confidence=region.quality.confidence,
                )
                for region in regions
            ]

            async with self.db.transaction() as conn:
                # the row lock serialises concurrent runs on the same photo
                current = await self.db.get_photo(photo_id, conn=conn, for_update=True)
                if current is None:
                    raise PhotoNotFoundError(photo_id)
                if current.processing_status == ProcessingStatus.COMPLETED and not force:
                    return None
                _refuse_assigned_faces(photo_id, await self.db.get_photo_faces(photo_id, conn=conn))
                await self.db.delete_photo_faces(photo_id, conn=conn)
                await self.db.insert_detected_faces(photo_id, faces, conn=conn)
                await self.db.complete_detection(photo_id, len(faces), conn=conn)
            return len(faces)

        async def record_failure(n: int, exc: BaseException):
            if not isinstance(exc, (ConflictError, PhotoNotFoundError)):
                await self.db.record_processing_failure(photo_id, error_message(exc))

        try:
            count = await self.retry_policy.run(
                attempt,
                on_failure=record_failure,
                label=f"[Detection] photo {photo_id}",
            )
        except ConflictError:
            # faces were assigned while the service was detecting; nothing was written
            await self.db.set_processing_status(photo_id, photo.processing_status)
            raise
        except PhotoNotFoundError:
            logger.warning(f"[v{VERSION}] [Detection] Photo {photo_id} was deleted while detecting")
            raise
        except Exception as e:
            message = error_message(e)
            await self.db.mark_detection_failed(photo_id, message)
            logger.error(f"[v{VERSION}] [Detection] Photo {photo_id}: failed after {attempts} attempt(s): {message}")
            return DetectionResult(
                photo_id=photo_id,
                status=ProcessingStatus.FAILED,
                attempts=attempts,
                error=message,
            )

        if count is None:
            logger.info(f"[v{VERSION}] [Detection] Photo {photo_id}: completed by a concurrent run, skipping")
            return self._skipped(await self.db.get_photo(photo_id))

        logger.info(f"[v{VERSION}] [Detection] Photo {photo_id}: {count} face(s) detected")
        return DetectionResult(
            photo_id=photo_id,
            status=ProcessingStatus.COMPLETED,
            faces_detected=count,
            attempts=attempts,
        )

    @staticmethod
    def _skipped(photo) -> DetectionResult:
        return DetectionResult(
            photo_id=photo.id,
            status=photo.processing_status,
            faces_detected=photo.face_count,
            skipped=True,
        )
