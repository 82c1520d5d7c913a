"""
Maintenance API Router
Operator endpoints (read-only)
"""

from fastapi import APIRouter, Depends

from core.responses import ApiResponse
from core.logging import get_logger
from routers.dependencies import get_reconciler
from services.reconciler import ConsistencyReconciler

logger = get_logger(__name__)
router = APIRouter()


@router.get("/drift")
async def template_drift(reconciler: ConsistencyReconciler = Depends(get_reconciler)):
    """Compare local encodings with the remote template collection. Never modifies anything."""
    report = await reconciler.audit_drift()
    return ApiResponse.ok(report, meta={"in_sync": report.in_sync})
