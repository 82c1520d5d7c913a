"""
Atomic Identity Commit.

commit_assignment(face, name | person_id) does, as one unit:
    1. create or reuse the Person
    2. set the face's person_id, is_confirmed=True
    3. register a template for the face crop with the recognition service
    4. write the template id onto the face and a new FaceEncoding row

Steps 1, 2 and 4 share one database transaction and step 3 runs inside it,
before commit. If indexing fails the transaction rolls back and nothing local
remains. If indexing succeeded but a later local write fails the commit still
fails; the remote template is then orphaned, logged at ERROR with its id, and
reported by the drift audit.

The photo is read and cropped before the transaction opens, so storage
latency does not hold row locks.
"""

import asyncio
from typing import Optional

from core.config import VERSION, settings
from core.exceptions import (
    ConflictError,
    FaceAlreadyAssignedError,
    FaceNotFoundError,
    PersonNotFoundError,
    PhotoNotFoundError,
    ValidationError,
)
from core.logging import get_logger
from infrastructure.rekognition import RecognitionBackend
from models.domain.face import DetectedFace, ReviewStatus
from models.responses import CommitResult
from services.templates import index_template_or_raise
from utils.image import crop_face_region

logger = get_logger(__name__)


class IdentityCommitService:

    def __init__(self, db, backend: RecognitionBackend, storage, crop_padding: Optional[float] = None):
        self.db = db
        self.backend = backend
        self.storage = storage
        self.crop_padding = crop_padding if crop_padding is not None else settings.index_crop_padding

    async def commit_assignment(
        self,
        face_id: int,
        name: Optional[str] = None,
        person_id: Optional[int] = None,
    ) -> CommitResult:
        """
        Assign an unassigned face to a new (name) or existing (person_id) identity.

        A name matching an existing person (case-insensitive) reuses that person.

        Raises:
            ValidationError: not exactly one of name / person_id
            FaceNotFoundError, PersonNotFoundError, PhotoNotFoundError
            FaceAlreadyAssignedError: the face already has a person
            TemplateIndexError: the recognition service refused the face
        """
        if name is not None:
            name = name.strip()
        if bool(name) == (person_id is not None):
            raise ValidationError("Provide exactly one of 'name' or 'person_id'", field="name")

        face = await self.db.get_face(face_id)
        if face is None:
            raise FaceNotFoundError(face_id)
        if face.is_assigned:
            raise FaceAlreadyAssignedError(face_id, face.person_id)

        if person_id is not None and await self.db.get_person(person_id) is None:
            raise PersonNotFoundError(person_id)

        return await self._commit(face, name=name, person_id=person_id, expected_person_id=None)

    async def confirm_match(self, face_id: int) -> CommitResult:
        """
        Accept the person the matcher proposed for a face and register its template.

        Raises:
            FaceNotFoundError
            ConflictError: the face carries no proposal (unassigned or already committed)
            TemplateIndexError
        """
        face = await self.db.get_face(face_id)
        if face is None:
            raise FaceNotFoundError(face_id)
        if not self._is_proposal(face):
            raise ConflictError(
                f"Face '{face_id}' has no recognition match awaiting confirmation",
                details={"face_id": face_id, "review_status": face.review_status.value},
            )
        if await self.db.get_person(face.person_id) is None:
            raise PersonNotFoundError(face.person_id)

        return await self._commit(face, person_id=face.person_id, expected_person_id=face.person_id)

    async def reject_match(self, face_id: int) -> DetectedFace:
        """Drop a proposed match; the face becomes unassigned with review_status "rejected"."""
        face = await self.db.get_face(face_id)
        if face is None:
            raise FaceNotFoundError(face_id)
        if not self._is_proposal(face):
            raise ConflictError(
                f"Face '{face_id}' has no recognition match to reject",
                details={"face_id": face_id, "review_status": face.review_status.value},
            )

        cleared = await self.db.clear_assignment(
            face_id, face.person_id, face.remote_template_id, ReviewStatus.REJECTED
        )
        if cleared is None:
            # confirmed or reassigned since it was read
            raise ConflictError(
                f"Face '{face_id}' changed while the rejection was in progress",
                details={"face_id": face_id, "person_id": face.person_id},
            )
        logger.info(f"[v{VERSION}] [Commit] Face {face_id}: proposed match rejected")
        return cleared

    @staticmethod
    def _changed(face: DetectedFace) -> ConflictError:
        if face.person_id is not None:
            return FaceAlreadyAssignedError(face.id, face.person_id)
        return ConflictError(f"Face '{face.id}' changed while the assignment was in progress")

    @staticmethod
    def _is_proposal(face: DetectedFace) -> bool:
        return face.is_assigned and not face.has_template and not face.is_confirmed

    async def _commit(
        self,
        face: DetectedFace,
        name: Optional[str] = None,
        person_id: Optional[int] = None,
        expected_person_id: Optional[int] = None,
    ) -> CommitResult:
        photo = await self.db.get_photo(face.photo_id)
        if photo is None:
            raise PhotoNotFoundError(face.photo_id)

        image_bytes = await asyncio.to_thread(self.storage.read, photo.storage_key)
        face_image = await asyncio.to_thread(
            crop_face_region, image_bytes, face.bounding_box, self.crop_padding
        )

        async with self.db.transaction() as conn:
            locked = await self.db.get_face(face.id, conn=conn, for_update=True)
            if locked is None:
                raise FaceNotFoundError(face.id)
            if locked.person_id != expected_person_id or locked.has_template:
                raise self._changed(locked)

            person_created = False
            if person_id is not None:
                person = await self.db.get_person(person_id, conn=conn)
                if person is None:
                    raise PersonNotFoundError(person_id)
            else:
                person = await self.db.find_person_by_name(name, conn=conn)
                if person is None:
                    person = await self.db.create_person(name, conn=conn)
                    person_created = True

            assigned = await self.db.assign_face(face.id, person.id, expected_person_id, conn=conn)
            if assigned is None:
                raise self._changed(locked)

            indexed = await index_template_or_raise(self.backend, face_image, face.id, person.id)

            try:
                committed_face = await self.db.attach_template(face.id, indexed.remote_template_id, conn=conn)
                encoding = await self.db.create_encoding(
                    person.id,
                    indexed.remote_template_id,
                    confidence=indexed.confidence,
                    source_image_ref=photo.storage_key,
                    conn=conn,
                )
            except Exception as e:
                logger.error(
                    f"[v{VERSION}] [Commit] Face {face.id}: local write failed after indexing; "
                    f"orphaned template {indexed.remote_template_id}: {e}"
                )
                raise

        logger.info(
            f"[v{VERSION}] [Commit] Face {face.id} -> person {person.id} ({person.name}), "
            f"template {indexed.remote_template_id}"
        )
        return CommitResult(
            person=person,
            face=committed_face,
            encoding=encoding,
            person_created=person_created,
        )
