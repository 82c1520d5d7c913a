"""
Photos API Router
Photo registration, detection, recognition and deletion
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from core.responses import ApiResponse
from core.logging import get_logger
from models.requests import RegisterPhotoRequest
from models.responses import PhotoWithFaces
from routers.dependencies import get_photo_service, get_reconciler
from services.photos import PhotoService
from services.reconciler import ConsistencyReconciler

logger = get_logger(__name__)
router = APIRouter()


@router.post("")
async def register_photo(
    data: RegisterPhotoRequest,
    photos: PhotoService = Depends(get_photo_service),
):
    """Register an image already uploaded to storage."""
    photo = await photos.register_photo(data.storage_key, data.filename)
    return ApiResponse.ok(photo)


@router.get("/{photo_id}")
async def get_photo(photo_id: int, photos: PhotoService = Depends(get_photo_service)):
    photo = await photos.get_photo(photo_id)
    faces = await photos.get_photo_faces(photo_id)
    return ApiResponse.ok(PhotoWithFaces(photo=photo, faces=faces))


@router.get("/{photo_id}/faces")
async def get_photo_faces(photo_id: int, photos: PhotoService = Depends(get_photo_service)):
    faces = await photos.get_photo_faces(photo_id)
    return ApiResponse.ok(faces, meta={"count": len(faces)})


@router.post("/{photo_id}/detect")
async def detect_faces(
    photo_id: int,
    force: bool = Query(False, description="Re-detect a completed photo (no face may be assigned)"),
    photos: PhotoService = Depends(get_photo_service),
):
    """Run detection. Failures are reported in the result, not as an error response."""
    result = await photos.detection.run_detection(photo_id, force=force)
    return ApiResponse.ok(result)


@router.post("/{photo_id}/recognize")
async def recognize_faces(photo_id: int, photos: PhotoService = Depends(get_photo_service)):
    result = await photos.recognition.run_recognition(photo_id)
    return ApiResponse.ok(result)


@router.post("/{photo_id}/process")
async def process_photo(
    photo_id: int,
    background_tasks: BackgroundTasks,
    background: bool = Query(False, description="Return immediately and process after the response"),
    photos: PhotoService = Depends(get_photo_service),
):
    """Detection followed by recognition."""
    if background:
        await photos.get_photo(photo_id)
        background_tasks.add_task(photos.process_photo_in_background, photo_id)
        logger.info(f"Photo {photo_id} queued for background processing")
        return ApiResponse.ok({"photo_id": photo_id, "queued": True})

    result = await photos.process_photo(photo_id)
    return ApiResponse.ok(result)


@router.delete("/{photo_id}")
async def delete_photo(photo_id: int, reconciler: ConsistencyReconciler = Depends(get_reconciler)):
    summary = await reconciler.delete_photo(photo_id)
    return ApiResponse.ok(summary)
