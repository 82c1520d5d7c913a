"""
Encodings API Router
Removal of registered face templates
"""

from fastapi import APIRouter, Depends

from core.responses import ApiResponse
from models.requests import IdsRequest
from routers.dependencies import get_reconciler
from services.reconciler import ConsistencyReconciler

router = APIRouter()


@router.delete("/{encoding_id}")
async def delete_encoding(encoding_id: int, reconciler: ConsistencyReconciler = Depends(get_reconciler)):
    summary = await reconciler.delete_encoding(encoding_id)
    return ApiResponse.ok(summary)


@router.post("/bulk-delete")
async def bulk_delete_encodings(data: IdsRequest, reconciler: ConsistencyReconciler = Depends(get_reconciler)):
    """Delete several encodings; unknown ids are ignored."""
    summary = await reconciler.delete_encodings(data.ids)
    return ApiResponse.ok(summary)
