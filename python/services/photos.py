"""
Photo records and the detection -> recognition pipeline.

process_photo enforces the ordering between the two stages: recognition runs
only after detection completed and found at least one face.
"""

from typing import List, Optional

from core.config import VERSION
from core.exceptions import PhotoNotFoundError
from core.logging import get_logger, log_error
from models.domain.face import DetectedFace
from models.domain.photo import Photo
from models.responses import PipelineResult
from services.detection import DetectionOrchestrator
from services.recognition import RecognitionMatcher

logger = get_logger(__name__)


class PhotoService:

    def __init__(self, db, detection: DetectionOrchestrator, recognition: RecognitionMatcher):
        self.db = db
        self.detection = detection
        self.recognition = recognition

    async def register_photo(self, storage_key: str, filename: Optional[str] = None) -> Photo:
        """Create the photo record for an image already in storage."""
        return await self.db.create_photo(storage_key, filename)

    async def get_photo(self, photo_id: int) -> Photo:
        photo = await self.db.get_photo(photo_id)
        if photo is None:
            raise PhotoNotFoundError(photo_id)
        return photo

    async def get_photo_faces(self, photo_id: int) -> List[DetectedFace]:
        await self.get_photo(photo_id)
        return await self.db.get_photo_faces(photo_id)

    async def process_photo(self, photo_id: int, force: bool = False) -> PipelineResult:
        """Run detection, then recognition when detection produced faces."""
        detection = await self.detection.run_detection(photo_id, force=force)
        result = PipelineResult(detection=detection)

        if not detection.succeeded or detection.faces_detected == 0:
            logger.info(
                f"[v{VERSION}] [Pipeline] Photo {photo_id}: recognition not run "
                f"(status: {detection.status.value}, faces: {detection.faces_detected})"
            )
            return result

        result.recognition = await self.recognition.run_recognition(photo_id)
        return result

    async def process_photo_in_background(self, photo_id: int) -> None:
        """BackgroundTasks entry point; errors are logged since no caller awaits them."""
        try:
            await self.process_photo(photo_id)
        except Exception as e:
            log_error(logger, e, context=f"Pipeline photo {photo_id}")
