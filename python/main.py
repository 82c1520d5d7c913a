"""
Face Tagging API - Main Entry Point

This is the FastAPI application entry point.
Uses core/ for configuration, exceptions, and logging.
"""

from dotenv import load_dotenv
load_dotenv()

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

# Core imports
from core.config import settings, VERSION
from core.exceptions import AppException
from core.responses import ApiResponse
from core.logging import setup_logging, get_logger
from core.retry import RetryPolicy

# Setup logging first
setup_logging(level=settings.log_level if not settings.debug else "DEBUG")
logger = get_logger(__name__)

# Service imports
from infrastructure.minio_storage import get_minio_storage
from infrastructure.rekognition import get_recognition_backend
from services.database import get_db_client
from services.assignment import IdentityCommitService
from services.detection import DetectionOrchestrator
from services.people import PeopleService
from services.photos import PhotoService
from services.recognition import RecognitionMatcher
from services.reconciler import ConsistencyReconciler

# Router imports
from routers import dependencies, photos, faces, people, encodings, maintenance


# ============================================================
# Global Exception Handlers
# ============================================================

async def app_exception_handler(request: Request, exc: AppException):
    """
    Handle all custom AppException and subclasses.
    Returns unified ApiResponse format.
    """
    logger.warning(f"AppException: {exc.code} - {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=ApiResponse.from_exception(exc).model_dump()
    )


async def generic_exception_handler(request: Request, exc: Exception):
    """
    Handle unexpected exceptions.
    Logs full traceback and returns generic error.
    """
    logger.error(f"Unhandled exception: {type(exc).__name__}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=ApiResponse.fail(
            message="Internal server error",
            code="INTERNAL_ERROR"
        ).model_dump()
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)


# ============================================================
# Router Registration
# ============================================================

def include_routers(app: FastAPI) -> None:
    app.include_router(photos.router, prefix="/api/photos", tags=["photos"])
    app.include_router(faces.router, prefix="/api/faces", tags=["faces"])
    app.include_router(people.router, prefix="/api/people", tags=["people"])
    app.include_router(encodings.router, prefix="/api/encodings", tags=["encodings"])
    app.include_router(maintenance.router, prefix="/api/maintenance", tags=["maintenance"])

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return ApiResponse.ok({
            "status": "healthy",
            "service": "facetag-engine",
            "version": VERSION,
            "collection": settings.collection_id,
        }).model_dump()


# ============================================================
# Service Initialization (Dependency Injection)
# ============================================================

logger.info(f"Starting Face Tagging API v{VERSION}")
logger.info("Creating singleton service instances...")

# 1. Stores and external services
db = get_db_client()
storage = get_minio_storage()
backend = get_recognition_backend()
retry_policy = RetryPolicy.from_settings()
logger.info("✓ Created PostgresClient, MinioStorage and RekognitionBackend")

# 2. Engine services
detection_service = DetectionOrchestrator(db, backend, storage, retry_policy)
recognition_service = RecognitionMatcher(db, backend, storage, retry_policy)
commit_service = IdentityCommitService(db, backend, storage)
reconciler = ConsistencyReconciler(db, backend, storage, commit_service)
photo_service = PhotoService(db, detection_service, recognition_service)
people_service = PeopleService(db)
logger.info("✓ Created engine services")

# 3. Inject services into routers
dependencies.set_services(photo_service, commit_service, reconciler, people_service)
logger.info("✓ Service instances injected into routers")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await db.connect()
    await db.ensure_schema()
    try:
        await asyncio.to_thread(backend.ensure_collection)
    except AppException as e:
        # The API still serves reads; recognition calls will fail until fixed
        logger.error(f"Face collection check failed: {e.message}")
    logger.info(f"Application startup complete. Running on {settings.server_host}:{settings.server_port}")
    yield
    await db.disconnect()


# ============================================================
# Application Setup
# ============================================================

app = FastAPI(
    title="Face Tagging API",
    description="Face detection, recognition and identity assignment for group photos",
    version=VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    redirect_slashes=False,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    max_age=3600,
)
logger.info("CORS middleware configured")

register_exception_handlers(app)
include_routers(app)


# ============================================================
# Entry Point
# ============================================================

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.debug
    )
