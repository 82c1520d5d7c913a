"""
Recognition & Geometric Matcher.

Searches the template collection with the whole photo and binds each match
back to one detected face. The service reports which template matched but not
reliably which face in a group photo it matched, so binding is done by
bounding-box overlap (utils.geometry.bind_matches).

Bound matches are tiered:
    similarity >= conservative threshold -> review_status "confirmed"
    liberal <= similarity < conservative -> review_status "review"
Unbound matches leave faces untouched for manual labeling.

A recognition-bound face gets person_id but no template: it is a proposal.
Committing it (confirm) registers a template; rejecting it clears the person and keeps the
face out of later recognition passes.
"""

import asyncio
from typing import Optional

from core.config import VERSION, settings
from core.exceptions import PhotoNotFoundError
from core.logging import get_logger
from core.retry import RetryPolicy
from infrastructure.rekognition import RecognitionBackend
from models.domain.face import ReviewStatus
from models.domain.photo import ProcessingStatus
from models.responses import BoundMatch, RecognitionResult
from services.detection import error_message
from utils.geometry import bind_matches

logger = get_logger(__name__)

DETECTION_METHOD = "group_photo"


def awaiting_recognition(face) -> bool:
    """Unassigned and not previously rejected by a reviewer."""
    return not face.is_assigned and face.review_status != ReviewStatus.REJECTED


class RecognitionMatcher:

    def __init__(
        self,
        db,
        backend: RecognitionBackend,
        storage,
        retry_policy: Optional[RetryPolicy] = None,
        liberal_threshold: Optional[float] = None,
        conservative_threshold: Optional[float] = None,
        min_overlap_ratio: Optional[float] = None,
        max_results: Optional[int] = None,
    ):
        self.db = db
        self.backend = backend
        self.storage = storage
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.liberal_threshold = liberal_threshold if liberal_threshold is not None else settings.liberal_threshold
        self.conservative_threshold = (
            conservative_threshold if conservative_threshold is not None else settings.conservative_threshold
        )
        self.min_overlap_ratio = min_overlap_ratio if min_overlap_ratio is not None else settings.min_overlap_ratio
        self.max_results = max_results or settings.search_max_results

    def classify(self, similarity: float) -> Optional[ReviewStatus]:
        """Review tier for a similarity score; None below the liberal threshold."""
        if similarity >= self.conservative_threshold:
            return ReviewStatus.CONFIRMED
        if similarity >= self.liberal_threshold:
            return ReviewStatus.REVIEW
        return None

    async def run_recognition(self, photo_id: int) -> RecognitionResult:
        """
        One recognition pass over a photo's unassigned faces.

        Faces whose proposal a reviewer rejected are not proposed again; they
        wait for manual labeling.

        Runs only after detection completed with at least one face and while
        some face is still unassigned; otherwise returns a skipped result.
        Repeated failures are reported in the result, never raised, and leave
        the faces as they were.

        Raises:
            PhotoNotFoundError: no such photo
        """
        photo = await self.db.get_photo(photo_id)
        if photo is None:
            raise PhotoNotFoundError(photo_id)

        result = RecognitionResult(photo_id=photo_id, threshold_used=self.liberal_threshold)

        if photo.processing_status != ProcessingStatus.COMPLETED:
            result.skipped = True
            result.reason = f"detection not completed (status: {photo.processing_status.value})"
            return result
        if photo.face_count == 0:
            result.skipped = True
            result.reason = "no faces detected"
            return result

        faces = await self.db.get_photo_faces(photo_id)
        if not any(awaiting_recognition(f) for f in faces):
            result.skipped = True
            result.reason = "no faces awaiting recognition"
            return result

        attempts = 0

        async def attempt(n: int) -> RecognitionResult:
            nonlocal attempts
            attempts = n
            return await self._recognize(photo_id, photo.storage_key)

        try:
            result = await self.retry_policy.run(attempt, label=f"[Recognition] photo {photo_id}")
        except Exception as e:
            message = error_message(e)
            logger.warning(
                f"[v{VERSION}] [Recognition] Photo {photo_id}: gave up after {attempts} attempt(s): {message}. "
                f"Faces stay unassigned for manual labeling"
            )
            return RecognitionResult(
                photo_id=photo_id,
                threshold_used=self.liberal_threshold,
                attempts=attempts,
                error=message,
            )

        result.attempts = attempts
        logger.info(
            f"[v{VERSION}] [Recognition] Photo {photo_id}: {result.total_matches} match(es), "
            f"{result.faces_recognized} confirmed, {result.faces_needing_review} for review, "
            f"{result.unbound_matches} unbound"
        )
        return result

    async def _recognize(self, photo_id: int, storage_key: str) -> RecognitionResult:
        image_bytes = await asyncio.to_thread(self.storage.read, storage_key)
        matches = await asyncio.to_thread(
            self.backend.search,
            image_bytes,
            self.liberal_threshold,
            self.max_results,
        )
        matches = sorted(
            (m for m in matches if m.similarity >= self.liberal_threshold),
            key=lambda m: m.similarity,
            reverse=True,
        )

        result = RecognitionResult(
            photo_id=photo_id,
            total_matches=len(matches),
            threshold_used=self.liberal_threshold,
        )
        if not matches:
            return result

        encodings = await self.db.get_encodings_by_templates([m.remote_template_id for m in matches])
        owner = {e.remote_template_id: e.person_id for e in encodings}

        known = []
        for match in matches:
            if match.remote_template_id in owner:
                known.append(match)
            else:
                result.unknown_templates += 1
                logger.warning(
                    f"[Recognition] Photo {photo_id}: template {match.remote_template_id} "
                    f"has no local encoding (drift), ignoring"
                )

        async with self.db.transaction() as conn:
            faces = await self.db.get_photo_faces(photo_id, conn=conn)
            bound, unbound = bind_matches(
                known,
                [f for f in faces if awaiting_recognition(f)],
                self.min_overlap_ratio,
            )
            result.unbound_matches = len(unbound)

            for match, face, ratio in bound:
                person_id = owner[match.remote_template_id]
                status = self.classify(match.similarity)
                applied = await self.db.apply_recognition_match(
                    face.id,
                    person_id,
                    match.similarity,
                    status,
                    DETECTION_METHOD,
                    conn=conn,
                )
                if not applied:
                    result.unbound_matches += 1
                    continue

                if status == ReviewStatus.CONFIRMED:
                    result.faces_recognized += 1
                else:
                    result.faces_needing_review += 1
                result.matches.append(BoundMatch(
                    face_id=face.id,
                    person_id=person_id,
                    remote_template_id=match.remote_template_id,
                    similarity=match.similarity,
                    overlap_ratio=round(ratio, 4),
                    review_status=status,
                ))

        return result
