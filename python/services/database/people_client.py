from typing import List, Optional

from core.logging import get_logger
from models.domain.person import Person

logger = get_logger(__name__)


_PERSON_WITH_STATS = """
    SELECT
        p.*,
        (SELECT COUNT(*) FROM photo_faces pf WHERE pf.person_id = p.id) AS face_count,
        (SELECT COUNT(*) FROM face_encodings fe WHERE fe.person_id = p.id) AS encoding_count
    FROM people p
"""


class PeopleClient:
    """Client for managing people (named identities) in the database."""

    async def create_person(self, name: str, conn=None) -> Person:
        row = await self.fetchone(
            "INSERT INTO people (name) VALUES ($1) RETURNING *",
            name,
            conn=conn,
        )
        logger.info(f"[PeopleClient] Created person {row['id']}: {name}")
        return Person(**row)

    async def get_person(self, person_id: int, conn=None) -> Optional[Person]:
        row = await self.fetchone(_PERSON_WITH_STATS + " WHERE p.id = $1", person_id, conn=conn)
        return Person(**row) if row else None

    async def find_person_by_name(self, name: str, conn=None) -> Optional[Person]:
        """Case-insensitive exact name lookup; oldest match wins."""
        row = await self.fetchone(
            "SELECT * FROM people WHERE LOWER(name) = LOWER($1) ORDER BY id LIMIT 1",
            name.strip(),
            conn=conn,
        )
        return Person(**row) if row else None

    async def list_people(
        self,
        limit: int = 20,
        offset: int = 0,
        search: Optional[str] = None,
        conn=None,
    ) -> List[Person]:
        if search:
            rows = await self.fetch(
                _PERSON_WITH_STATS + " WHERE p.name ILIKE $1 ORDER BY p.name, p.id LIMIT $2 OFFSET $3",
                f"%{search}%",
                limit,
                offset,
                conn=conn,
            )
        else:
            rows = await self.fetch(
                _PERSON_WITH_STATS + " ORDER BY p.name, p.id LIMIT $1 OFFSET $2",
                limit,
                offset,
                conn=conn,
            )
        return [Person(**r) for r in rows]

    async def count_people(self, search: Optional[str] = None, conn=None) -> int:
        if search:
            return await self.fetchval(
                "SELECT COUNT(*) FROM people WHERE name ILIKE $1", f"%{search}%", conn=conn
            )
        return await self.fetchval("SELECT COUNT(*) FROM people", conn=conn)

    async def rename_person(self, person_id: int, name: str, conn=None) -> Optional[Person]:
        row = await self.fetchone(
            "UPDATE people SET name = $2, updated_at = NOW() WHERE id = $1 RETURNING *",
            person_id,
            name,
            conn=conn,
        )
        return Person(**row) if row else None

    async def delete_person(self, person_id: int, conn=None) -> int:
        status = await self.execute("DELETE FROM people WHERE id = $1", person_id, conn=conn)
        return self.affected_rows(status)
