"""
Consistency & Cleanup Reconciler.

Deletion and reassignment touch two stores that fail independently: the local
database and the remote template collection. The policy everywhere here:

- remote template deletion is best effort (services.templates) and happens
  before the local reference is dropped; a failure is logged and local state
  still advances
- all local writes of one operation share a single transaction
- anything left behind remotely shows up in audit_drift(), which only reports

Reassignment is split in two phases: first the old assignment is fully undone
(template deleted, encoding removed, face cleared), then the new identity is
committed through IdentityCommitService. The face therefore never points at a
template that no longer exists. If the second phase fails the face is left
unassigned and the error propagates.
"""

import asyncio
from typing import List, Optional

from core.config import VERSION
from core.exceptions import (
    ConflictError,
    FaceEncodingNotFoundError,
    FaceNotFoundError,
    PersonNotFoundError,
    PhotoNotFoundError,
)
from core.logging import get_logger
from infrastructure.rekognition import RecognitionBackend
from models.responses import DeletionSummary, DriftReport, ReassignResult
from services.assignment import IdentityCommitService
from services.templates import best_effort_delete_templates

logger = get_logger(__name__)


class ConsistencyReconciler:

    def __init__(self, db, backend: RecognitionBackend, storage, commit_service: IdentityCommitService):
        self.db = db
        self.backend = backend
        self.storage = storage
        self.commit_service = commit_service

    # === Reassign ===

    async def reassign(self, face_id: int, new_person_id: Optional[int] = None) -> ReassignResult:
        """
        Move a face to another person, or unassign it when new_person_id is None.

        Raises:
            FaceNotFoundError, PersonNotFoundError
            ConflictError: the face changed after it was read
            TemplateIndexError: registering the face for the new person failed
                (the face stays unassigned)
        """
        face = await self.db.get_face(face_id)
        if face is None:
            raise FaceNotFoundError(face_id)
        if new_person_id is not None and await self.db.get_person(new_person_id) is None:
            raise PersonNotFoundError(new_person_id)

        if (
            new_person_id is not None
            and face.person_id == new_person_id
            and face.has_template
        ):
            logger.info(f"[Reconciler] Face {face_id} already committed to person {new_person_id}")
            return ReassignResult(face=face, previous_person_id=face.person_id,
                                  previous_template_id=face.remote_template_id)

        previous_person_id = face.person_id
        previous_template_id = face.remote_template_id

        cleanup = await best_effort_delete_templates(
            self.backend,
            [previous_template_id],
            context=f"reassign face {face_id}",
        )

        if face.is_assigned or face.has_template:
            async with self.db.transaction() as conn:
                if previous_template_id:
                    await self.db.delete_encodings_by_templates([previous_template_id], conn=conn)
                face = await self.db.clear_assignment(
                    face_id, previous_person_id, previous_template_id, conn=conn
                )
                if face is None:
                    raise ConflictError(
                        f"Face '{face_id}' changed while the reassignment was in progress",
                        details={"face_id": face_id, "person_id": previous_person_id},
                    )

        result = ReassignResult(
            face=face,
            previous_person_id=previous_person_id,
            previous_template_id=previous_template_id,
            template_removed=previous_template_id in cleanup.deleted,
        )

        if new_person_id is not None:
            committed = await self.commit_service.commit_assignment(face_id, person_id=new_person_id)
            result.face = committed.face
            result.encoding = committed.encoding

        logger.info(
            f"[v{VERSION}] [Reconciler] Face {face_id}: person {previous_person_id} -> {new_person_id}"
        )
        return result

    # === Delete identity ===

    async def delete_person(self, person_id: int) -> DeletionSummary:
        """
        Delete a person. Their faces are reverted to unassigned, never deleted.

        Raises:
            PersonNotFoundError
        """
        person = await self.db.get_person(person_id)
        if person is None:
            raise PersonNotFoundError(person_id)

        encodings = await self.db.get_person_encodings(person_id)
        faces = await self.db.get_person_faces(person_id)
        template_ids = {e.remote_template_id for e in encodings}
        template_ids.update(f.remote_template_id for f in faces if f.remote_template_id)

        cleanup = await best_effort_delete_templates(
            self.backend, template_ids, context=f"delete person {person_id}"
        )

        async with self.db.transaction() as conn:
            encodings_deleted = await self.db.delete_person_encodings(person_id, conn=conn)
            faces_reverted = await self.db.revert_person_faces(person_id, conn=conn)
            people_deleted = await self.db.delete_person(person_id, conn=conn)

        logger.info(
            f"[v{VERSION}] [Reconciler] Deleted person {person_id} ({person.name}): "
            f"{encodings_deleted} encoding(s), {faces_reverted} face(s) reverted"
        )
        return DeletionSummary(
            person_id=person_id,
            encodings_deleted=encodings_deleted,
            faces_reverted=faces_reverted,
            people_deleted=people_deleted,
            templates_deleted=len(cleanup.deleted),
            template_cleanup_error=cleanup.error,
        )

    # === Delete photo ===

    async def delete_photo(self, photo_id: int) -> DeletionSummary:
        """
        Delete a photo with its faces and the encodings registered from them,
        then the stored image.

        Raises:
            PhotoNotFoundError
        """
        photo = await self.db.get_photo(photo_id)
        if photo is None:
            raise PhotoNotFoundError(photo_id)

        template_ids = await self.db.get_face_template_ids(photo_id)
        cleanup = await best_effort_delete_templates(
            self.backend, template_ids, context=f"delete photo {photo_id}"
        )

        async with self.db.transaction() as conn:
            encodings_deleted = await self.db.delete_encodings_by_templates(template_ids, conn=conn)
            faces_deleted = await self.db.delete_photo_faces(photo_id, conn=conn)
            photos_deleted = await self.db.delete_photo(photo_id, conn=conn)

        image_deleted = await self._delete_image(photo.storage_key)

        logger.info(
            f"[v{VERSION}] [Reconciler] Deleted photo {photo_id}: {faces_deleted} face(s), "
            f"{encodings_deleted} encoding(s), image deleted: {image_deleted}"
        )
        return DeletionSummary(
            photo_id=photo_id,
            encodings_deleted=encodings_deleted,
            faces_deleted=faces_deleted,
            photos_deleted=photos_deleted,
            templates_deleted=len(cleanup.deleted),
            template_cleanup_error=cleanup.error,
            image_deleted=image_deleted,
        )

    async def _delete_image(self, storage_key: str) -> bool:
        try:
            return await asyncio.to_thread(self.storage.delete, storage_key)
        except Exception as e:
            logger.warning(f"[Reconciler] Could not delete stored image {storage_key}: {e}")
            return False

    # === Encodings ===

    async def delete_encoding(self, encoding_id: int) -> DeletionSummary:
        """
        Raises:
            FaceEncodingNotFoundError
        """
        encoding = await self.db.get_encoding(encoding_id)
        if encoding is None:
            raise FaceEncodingNotFoundError(encoding_id)
        return await self.delete_encodings([encoding_id])

    async def delete_encodings(self, encoding_ids: List[int]) -> DeletionSummary:
        """
        Remove templates. Faces registered with them revert to unassigned;
        unknown ids are ignored.
        """
        encodings = await self.db.get_encodings(encoding_ids)
        if not encodings:
            return DeletionSummary()

        template_ids = [e.remote_template_id for e in encodings]
        cleanup = await best_effort_delete_templates(
            self.backend, template_ids, context="delete encodings"
        )

        async with self.db.transaction() as conn:
            faces_reverted = await self.db.revert_template_faces(template_ids, conn=conn)
            encodings_deleted = await self.db.delete_encodings([e.id for e in encodings], conn=conn)

        logger.info(
            f"[v{VERSION}] [Reconciler] Deleted {encodings_deleted} encoding(s), "
            f"{faces_reverted} face(s) reverted"
        )
        return DeletionSummary(
            encodings_deleted=encodings_deleted,
            faces_reverted=faces_reverted,
            templates_deleted=len(cleanup.deleted),
            template_cleanup_error=cleanup.error,
        )

    # === Drift ===

    async def audit_drift(self) -> DriftReport:
        """
        Compare local encodings with the remote collection. Read-only.

        Raises:
            ExternalServiceError: the collection could not be listed
        """
        remote_ids = set(await asyncio.to_thread(self.backend.list_templates))
        local_ids = set(await self.db.list_template_ids())
        unshadowed = await self.db.get_unshadowed_face_template_ids()

        report = DriftReport(
            collection_id=self.backend.collection_id,
            local_count=len(local_ids),
            remote_count=len(remote_ids),
            local_only=sorted(local_ids - remote_ids),
            remote_only=sorted(remote_ids - local_ids),
            unshadowed_face_templates=sorted(unshadowed),
        )
        if report.in_sync:
            logger.info(f"[Reconciler] Drift audit: in sync ({report.local_count} templates)")
        else:
            logger.warning(
                f"[Reconciler] Drift audit: {len(report.local_only)} local-only, "
                f"{len(report.remote_only)} remote-only, "
                f"{len(report.unshadowed_face_templates)} face template(s) without encoding"
            )
        return report
