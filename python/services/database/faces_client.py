"""Client for photo_faces operations."""

import json
from typing import List, Dict, Optional, Any

from core.logging import get_logger
from models.domain.face import BoundingBox, DetectedFace, NewDetectedFace, ReviewStatus

logger = get_logger(__name__)


def _row_to_face(row: Dict[str, Any]) -> DetectedFace:
    data = dict(row)
    bbox = data.get("bounding_box")
    if isinstance(bbox, str):
        bbox = json.loads(bbox)
    data["bounding_box"] = BoundingBox(**bbox)
    return DetectedFace(**data)


class FacesClient:
    """Handles photo_faces rows: detection output and identity assignment."""

    async def insert_detected_faces(
        self,
        photo_id: int,
        faces: List[NewDetectedFace],
        detection_method: Optional[str] = None,
        conn=None,
    ) -> List[DetectedFace]:
        inserted = []
        for face in faces:
            row = await self.fetchone(
                """
                INSERT INTO photo_faces
                    (photo_id, bounding_box, quality_score, detection_confidence, detection_method)
                VALUES ($1, $2::jsonb, $3, $4, $5)
                RETURNING *
                """,
                photo_id,
                json.dumps(face.bounding_box.model_dump()),
                face.quality_score,
                face.detection_confidence,
                detection_method,
                conn=conn,
            )
            inserted.append(_row_to_face(row))
        return inserted

    async def get_face(self, face_id: int, conn=None, for_update: bool = False) -> Optional[DetectedFace]:
        query = "SELECT * FROM photo_faces WHERE id = $1"
        if for_update:
            query += " FOR UPDATE"
        row = await self.fetchone(query, face_id, conn=conn)
        return _row_to_face(row) if row else None

    async def get_photo_faces(self, photo_id: int, conn=None) -> List[DetectedFace]:
        rows = await self.fetch(
            "SELECT * FROM photo_faces WHERE photo_id = $1 ORDER BY id",
            photo_id,
            conn=conn,
        )
        return [_row_to_face(r) for r in rows]

    async def get_person_faces(self, person_id: int, conn=None) -> List[DetectedFace]:
        rows = await self.fetch(
            "SELECT * FROM photo_faces WHERE person_id = $1 ORDER BY id",
            person_id,
            conn=conn,
        )
        return [_row_to_face(r) for r in rows]

    async def delete_photo_faces(self, photo_id: int, conn=None) -> int:
        status = await self.execute("DELETE FROM photo_faces WHERE photo_id = $1", photo_id, conn=conn)
        return self.affected_rows(status)

    async def get_face_template_ids(self, photo_id: int, conn=None) -> List[str]:
        rows = await self.fetch(
            """
            SELECT DISTINCT remote_template_id FROM photo_faces
            WHERE photo_id = $1 AND remote_template_id IS NOT NULL
            """,
            photo_id,
            conn=conn,
        )
        return [r["remote_template_id"] for r in rows]

    async def get_unshadowed_face_template_ids(self, conn=None) -> List[str]:
        """Template ids referenced by faces but absent from face_encodings."""
        rows = await self.fetch(
            """
            SELECT DISTINCT pf.remote_template_id
            FROM photo_faces pf
            LEFT JOIN face_encodings fe ON fe.remote_template_id = pf.remote_template_id
            WHERE pf.remote_template_id IS NOT NULL AND fe.id IS NULL
            ORDER BY pf.remote_template_id
            """,
            conn=conn,
        )
        return [r["remote_template_id"] for r in rows]

    # === Assignment ===

    async def apply_recognition_match(
        self,
        face_id: int,
        person_id: int,
        confidence: float,
        review_status: ReviewStatus,
        detection_method: str,
        conn=None,
    ) -> bool:
        """
        Propose a person for an unassigned face.

        False if the face was taken meanwhile or a reviewer rejected an
        earlier proposal for it.
        """
        status = await self.execute(
            """
            UPDATE photo_faces
            SET person_id = $2,
                confidence = $3,
                review_status = $4,
                detection_method = $5,
                is_confirmed = FALSE
            WHERE id = $1
              AND person_id IS NULL
              AND review_status <> 'rejected'
            """,
            face_id,
            person_id,
            confidence,
            review_status.value,
            detection_method,
            conn=conn,
        )
        return self.affected_rows(status) == 1

    async def assign_face(
        self,
        face_id: int,
        person_id: int,
        expected_person_id: Optional[int] = None,
        conn=None,
    ) -> Optional[DetectedFace]:
        """
        Commit a person onto a face that has no template yet.

        expected_person_id is the person the face currently carries (None for
        an unassigned face, the proposed person when confirming a match).
        Returns None when the row no longer matches, i.e. a concurrent
        commit won.
        """
        row = await self.fetchone(
            """
            UPDATE photo_faces
            SET person_id = $2,
                is_confirmed = TRUE,
                review_status = 'confirmed'
            WHERE id = $1
              AND person_id IS NOT DISTINCT FROM $3::bigint
              AND remote_template_id IS NULL
            RETURNING *
            """,
            face_id,
            person_id,
            expected_person_id,
            conn=conn,
        )
        return _row_to_face(row) if row else None

    async def attach_template(self, face_id: int, remote_template_id: str, conn=None) -> DetectedFace:
        row = await self.fetchone(
            "UPDATE photo_faces SET remote_template_id = $2 WHERE id = $1 RETURNING *",
            face_id,
            remote_template_id,
            conn=conn,
        )
        return _row_to_face(row)

    async def clear_assignment(
        self,
        face_id: int,
        expected_person_id: Optional[int],
        expected_template_id: Optional[str],
        review_status: ReviewStatus = ReviewStatus.PENDING,
        conn=None,
    ) -> Optional[DetectedFace]:
        """
        Unassign a face the caller last saw with the given person and template.

        Returns None when the row no longer carries them, i.e. someone else
        changed the face in between.
        """
        row = await self.fetchone(
            """
            UPDATE photo_faces
            SET person_id = NULL,
                remote_template_id = NULL,
                confidence = NULL,
                is_confirmed = FALSE,
                review_status = $2
            WHERE id = $1
              AND person_id IS NOT DISTINCT FROM $3::bigint
              AND remote_template_id IS NOT DISTINCT FROM $4::text
            RETURNING *
            """,
            face_id,
            review_status.value,
            expected_person_id,
            expected_template_id,
            conn=conn,
        )
        return _row_to_face(row) if row else None

    async def revert_person_faces(self, person_id: int, conn=None) -> int:
        """Unassign every face of a person; the rows themselves stay."""
        status = await self.execute(
            """
            UPDATE photo_faces
            SET person_id = NULL,
                remote_template_id = NULL,
                confidence = NULL,
                is_confirmed = FALSE,
                review_status = 'pending'
            WHERE person_id = $1
            """,
            person_id,
            conn=conn,
        )
        return self.affected_rows(status)

    async def revert_template_faces(self, template_ids: List[str], conn=None) -> int:
        if not template_ids:
            return 0
        status = await self.execute(
            """
            UPDATE photo_faces
            SET person_id = NULL,
                remote_template_id = NULL,
                confidence = NULL,
                is_confirmed = FALSE,
                review_status = 'pending'
            WHERE remote_template_id = ANY($1::text[])
            """,
            template_ids,
            conn=conn,
        )
        return self.affected_rows(status)
