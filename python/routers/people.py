"""
People API Router
CRUD for people; deletion reverts their faces instead of removing them
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.responses import ApiResponse, PaginationMeta
from core.logging import get_logger
from models.requests import PersonCreate, PersonUpdate
from routers.dependencies import get_people_service, get_reconciler
from services.people import PeopleService
from services.reconciler import ConsistencyReconciler

logger = get_logger(__name__)
router = APIRouter()


@router.get("")
async def get_people(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, description="Case-insensitive name filter"),
    people: PeopleService = Depends(get_people_service),
):
    items, total = await people.list_people(page=page, per_page=per_page, search=search)
    meta = PaginationMeta.create(page, per_page, total)
    return ApiResponse.ok(items, meta=meta.model_dump())


@router.post("")
async def create_person(data: PersonCreate, people: PeopleService = Depends(get_people_service)):
    person = await people.create_person(data.name)
    return ApiResponse.ok(person)


@router.get("/{person_id}")
async def get_person(person_id: int, people: PeopleService = Depends(get_people_service)):
    person = await people.get_person(person_id)
    return ApiResponse.ok(person)


@router.patch("/{person_id}")
async def update_person(
    person_id: int,
    data: PersonUpdate,
    people: PeopleService = Depends(get_people_service),
):
    person = await people.rename_person(person_id, data.name)
    return ApiResponse.ok(person)


@router.delete("/{person_id}")
async def delete_person(person_id: int, reconciler: ConsistencyReconciler = Depends(get_reconciler)):
    """Delete a person, their templates and encodings. Their faces become unassigned."""
    summary = await reconciler.delete_person(person_id)
    return ApiResponse.ok(summary)


@router.get("/{person_id}/encodings")
async def get_person_encodings(person_id: int, people: PeopleService = Depends(get_people_service)):
    encodings = await people.get_person_encodings(person_id)
    return ApiResponse.ok(encodings, meta={"count": len(encodings)})
