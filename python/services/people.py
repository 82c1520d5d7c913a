"""People management (create, read, rename, search). Deletion lives in the reconciler."""

from typing import List, Optional, Tuple

from core.exceptions import PersonNotFoundError
from core.logging import get_logger
from models.domain.encoding import FaceEncoding
from models.domain.person import Person

logger = get_logger(__name__)


class PeopleService:

    def __init__(self, db):
        self.db = db

    async def create_person(self, name: str) -> Person:
        return await self.db.create_person(name.strip())

    async def get_person(self, person_id: int) -> Person:
        person = await self.db.get_person(person_id)
        if person is None:
            raise PersonNotFoundError(person_id)
        return person

    async def list_people(
        self,
        page: int = 1,
        per_page: int = 20,
        search: Optional[str] = None,
    ) -> Tuple[List[Person], int]:
        search = search.strip() if search else None
        offset = (page - 1) * per_page
        people = await self.db.list_people(limit=per_page, offset=offset, search=search)
        total = await self.db.count_people(search=search)
        return people, total

    async def rename_person(self, person_id: int, name: str) -> Person:
        person = await self.db.rename_person(person_id, name.strip())
        if person is None:
            raise PersonNotFoundError(person_id)
        logger.info(f"[People] Renamed person {person_id} to {person.name}")
        return person

    async def get_person_encodings(self, person_id: int) -> List[FaceEncoding]:
        await self.get_person(person_id)
        return await self.db.get_person_encodings(person_id)
