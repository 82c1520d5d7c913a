"""
Dependency injection for API endpoints.
Shared instances are set by main.py on startup (or by tests).
"""

from services.assignment import IdentityCommitService
from services.people import PeopleService
from services.photos import PhotoService
from services.reconciler import ConsistencyReconciler

# Global instances (set by main.py on startup)
photo_service_instance: PhotoService = None
commit_service_instance: IdentityCommitService = None
reconciler_instance: ConsistencyReconciler = None
people_service_instance: PeopleService = None


def set_services(
    photo_service: PhotoService,
    commit_service: IdentityCommitService,
    reconciler: ConsistencyReconciler,
    people_service: PeopleService,
):
    """
    Set the service instances. Called from main.py during startup.
    """
    global photo_service_instance, commit_service_instance, reconciler_instance, people_service_instance
    photo_service_instance = photo_service
    commit_service_instance = commit_service
    reconciler_instance = reconciler
    people_service_instance = people_service


def get_photo_service() -> PhotoService:
    """Dependency for FastAPI endpoints"""
    if photo_service_instance is None:
        raise RuntimeError("PhotoService not initialized. Check server startup logs.")
    return photo_service_instance


def get_commit_service() -> IdentityCommitService:
    """Dependency for FastAPI endpoints"""
    if commit_service_instance is None:
        raise RuntimeError("IdentityCommitService not initialized. Check server startup logs.")
    return commit_service_instance


def get_reconciler() -> ConsistencyReconciler:
    """Dependency for FastAPI endpoints"""
    if reconciler_instance is None:
        raise RuntimeError("ConsistencyReconciler not initialized. Check server startup logs.")
    return reconciler_instance


def get_people_service() -> PeopleService:
    """Dependency for FastAPI endpoints"""
    if people_service_instance is None:
        raise RuntimeError("PeopleService not initialized. Check server startup logs.")
    return people_service_instance
