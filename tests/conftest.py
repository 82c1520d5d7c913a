import io

import pytest
from PIL import Image

from core.retry import RetryPolicy
from services.assignment import IdentityCommitService
from services.detection import DetectionOrchestrator
from services.people import PeopleService
from services.photos import PhotoService
from services.recognition import RecognitionMatcher
from services.reconciler import ConsistencyReconciler
from tests.fakes import FakeDatabase, FakeRecognitionService, FakeStorage


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def backend():
    return FakeRecognitionService()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def retry_policy(sleeps):
    async def fake_sleep(delay):
        sleeps.append(delay)

    return RetryPolicy(max_attempts=3, base_delay=2.0, jitter=0.0, sleep=fake_sleep)


@pytest.fixture
def jpeg_bytes():
    image = Image.new("RGB", (400, 300), color=(120, 90, 60))
    out = io.BytesIO()
    image.save(out, format="JPEG")
    return out.getvalue()


@pytest.fixture
def detection(db, backend, storage, retry_policy):
    return DetectionOrchestrator(db, backend, storage, retry_policy)


@pytest.fixture
def recognition(db, backend, storage, retry_policy):
    return RecognitionMatcher(
        db,
        backend,
        storage,
        retry_policy,
        liberal_threshold=60.0,
        conservative_threshold=75.0,
        min_overlap_ratio=0.5,
        max_results=30,
    )


@pytest.fixture
def commit_service(db, backend, storage):
    return IdentityCommitService(db, backend, storage, crop_padding=0.3)


@pytest.fixture
def reconciler(db, backend, storage, commit_service):
    return ConsistencyReconciler(db, backend, storage, commit_service)


@pytest.fixture
def photo_service(db, detection, recognition):
    return PhotoService(db, detection, recognition)


@pytest.fixture
def people_service(db):
    return PeopleService(db)
