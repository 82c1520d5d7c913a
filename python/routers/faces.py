"""
Faces API Router
Identity assignment, reassignment and review of recognition matches
"""

from fastapi import APIRouter, Depends

from core.responses import ApiResponse
from core.logging import get_logger
from models.requests import AssignFaceRequest, ReassignFaceRequest
from routers.dependencies import get_commit_service, get_reconciler
from services.assignment import IdentityCommitService
from services.reconciler import ConsistencyReconciler

logger = get_logger(__name__)
router = APIRouter()


@router.post("/{face_id}/assign")
async def assign_face(
    face_id: int,
    data: AssignFaceRequest,
    commit: IdentityCommitService = Depends(get_commit_service),
):
    """Assign an unassigned face to a new name or an existing person."""
    result = await commit.commit_assignment(face_id, name=data.name, person_id=data.person_id)
    return ApiResponse.ok(result)


@router.post("/{face_id}/reassign")
async def reassign_face(
    face_id: int,
    data: ReassignFaceRequest,
    reconciler: ConsistencyReconciler = Depends(get_reconciler),
):
    """Move a face to another person; person_id null unassigns it."""
    result = await reconciler.reassign(face_id, data.person_id)
    return ApiResponse.ok(result)


@router.post("/{face_id}/confirm")
async def confirm_match(face_id: int, commit: IdentityCommitService = Depends(get_commit_service)):
    """Accept the person proposed by recognition."""
    result = await commit.confirm_match(face_id)
    return ApiResponse.ok(result)


@router.post("/{face_id}/reject")
async def reject_match(face_id: int, commit: IdentityCommitService = Depends(get_commit_service)):
    """Discard the person proposed by recognition."""
    face = await commit.reject_match(face_id)
    return ApiResponse.ok(face)
