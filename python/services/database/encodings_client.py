"""Client for face_encodings: local shadows of remote templates."""

from typing import List, Optional

from core.logging import get_logger
from models.domain.encoding import FaceEncoding

logger = get_logger(__name__)


class EncodingsClient:

    async def create_encoding(
        self,
        person_id: int,
        remote_template_id: str,
        confidence: Optional[float] = None,
        source_image_ref: Optional[str] = None,
        conn=None,
    ) -> FaceEncoding:
        row = await self.fetchone(
            """
            INSERT INTO face_encodings (person_id, remote_template_id, confidence, source_image_ref)
            VALUES ($1, $2, $3, $4)
            RETURNING *
            """,
            person_id,
            remote_template_id,
            confidence,
            source_image_ref,
            conn=conn,
        )
        return FaceEncoding(**row)

    async def get_encoding(self, encoding_id: int, conn=None) -> Optional[FaceEncoding]:
        row = await self.fetchone("SELECT * FROM face_encodings WHERE id = $1", encoding_id, conn=conn)
        return FaceEncoding(**row) if row else None

    async def get_encodings(self, encoding_ids: List[int], conn=None) -> List[FaceEncoding]:
        if not encoding_ids:
            return []
        rows = await self.fetch(
            "SELECT * FROM face_encodings WHERE id = ANY($1::bigint[]) ORDER BY id",
            encoding_ids,
            conn=conn,
        )
        return [FaceEncoding(**r) for r in rows]

    async def get_person_encodings(self, person_id: int, conn=None) -> List[FaceEncoding]:
        rows = await self.fetch(
            "SELECT * FROM face_encodings WHERE person_id = $1 ORDER BY id",
            person_id,
            conn=conn,
        )
        return [FaceEncoding(**r) for r in rows]

    async def get_encodings_by_templates(self, template_ids: List[str], conn=None) -> List[FaceEncoding]:
        if not template_ids:
            return []
        rows = await self.fetch(
            "SELECT * FROM face_encodings WHERE remote_template_id = ANY($1::text[])",
            template_ids,
            conn=conn,
        )
        return [FaceEncoding(**r) for r in rows]

    async def list_template_ids(self, conn=None) -> List[str]:
        rows = await self.fetch(
            "SELECT remote_template_id FROM face_encodings ORDER BY remote_template_id",
            conn=conn,
        )
        return [r["remote_template_id"] for r in rows]

    async def delete_encodings(self, encoding_ids: List[int], conn=None) -> int:
        if not encoding_ids:
            return 0
        status = await self.execute(
            "DELETE FROM face_encodings WHERE id = ANY($1::bigint[])",
            encoding_ids,
            conn=conn,
        )
        return self.affected_rows(status)

    async def delete_person_encodings(self, person_id: int, conn=None) -> int:
        status = await self.execute(
            "DELETE FROM face_encodings WHERE person_id = $1", person_id, conn=conn
        )
        return self.affected_rows(status)

    async def delete_encodings_by_templates(self, template_ids: List[str], conn=None) -> int:
        if not template_ids:
            return 0
        status = await self.execute(
            "DELETE FROM face_encodings WHERE remote_template_id = ANY($1::text[])",
            template_ids,
            conn=conn,
        )
        return self.affected_rows(status)
