import pytest

from core.exceptions import (
    ConflictError,
    PhotoNotFoundError,
    TerminalExternalError,
    TransientExternalError,
)
from models.domain.photo import ProcessingStatus
from tests.fakes import FakeRecognitionService as Fake, box


@pytest.fixture
def photo(db, storage, jpeg_bytes):
    photo = db.add_photo("photos/group.jpg")
    storage.objects[photo.storage_key] = jpeg_bytes
    return photo


async def test_detection_persists_faces_and_completes_photo(db, backend, storage, detection, photo):
    backend.detect_script.append([
        Fake.region(0.1, 0.1, 0.2, 0.2, brightness=80.0, sharpness=60.0),
        Fake.region(0.6, 0.2, 0.2, 0.2, brightness=None, sharpness=None, confidence=97.0),
    ])

    result = await detection.run_detection(photo.id)

    assert result.status == ProcessingStatus.COMPLETED
    assert result.faces_detected == 2
    assert result.attempts == 1

    stored = db.photos[photo.id]
    assert stored.processing_status == ProcessingStatus.COMPLETED
    assert stored.face_count == 2
    assert stored.processing_attempts == 0

    faces = await db.get_photo_faces(photo.id)
    assert [f.bounding_box for f in faces] == [box(0.1, 0.1, 0.2, 0.2), box(0.6, 0.2, 0.2, 0.2)]
    assert faces[0].quality_score == pytest.approx(70.0)
    assert faces[1].quality_score == pytest.approx(97.0)
    assert all(not f.is_assigned for f in faces)
    assert storage.reads == 1


async def test_two_failures_then_success_counts_failed_attempts(db, backend, storage, detection, photo, sleeps):
    backend.detect_script.extend([
        TransientExternalError("throttled"),
        TransientExternalError("timeout"),
        [Fake.region(0.1, 0.1, 0.2, 0.2)],
    ])

    result = await detection.run_detection(photo.id)

    assert result.status == ProcessingStatus.COMPLETED
    assert result.attempts == 3
    stored = db.photos[photo.id]
    assert stored.processing_status == ProcessingStatus.COMPLETED
    assert stored.processing_attempts == 2
    assert stored.last_error is None
    assert backend.calls.count("detect") == 3
    # image bytes are read once per attempt
    assert storage.reads == 3
    assert sleeps == [2.0, 4.0]


async def test_exhausted_retries_mark_photo_failed(db, backend, detection, photo):
    backend.detect_script.extend([TransientExternalError("service unavailable")] * 5)

    result = await detection.run_detection(photo.id)

    assert result.status == ProcessingStatus.FAILED
    assert result.error == "service unavailable"
    assert backend.calls.count("detect") == 3

    stored = db.photos[photo.id]
    assert stored.processing_status == ProcessingStatus.FAILED
    assert stored.processing_attempts == 3
    assert stored.last_error == "service unavailable"
    assert await db.get_photo_faces(photo.id) == []


async def test_terminal_error_fails_without_retry(db, backend, detection, photo, sleeps):
    backend.detect_script.append(TerminalExternalError("Image format not supported."))

    result = await detection.run_detection(photo.id)

    assert result.status == ProcessingStatus.FAILED
    assert backend.calls == ["detect"]
    assert sleeps == []
    assert db.photos[photo.id].processing_attempts == 1
    assert db.photos[photo.id].last_error == "Image format not supported."


async def test_failed_write_leaves_no_partial_faces(db, backend, detection, photo):
    backend.detect_script.extend([
        [Fake.region(0.1, 0.1, 0.2, 0.2), Fake.region(0.5, 0.5, 0.2, 0.2)],
        [Fake.region(0.1, 0.1, 0.2, 0.2), Fake.region(0.5, 0.5, 0.2, 0.2)],
    ])
    db.fail_on["complete_detection"] = RuntimeError("connection reset")

    result = await detection.run_detection(photo.id)

    assert result.status == ProcessingStatus.COMPLETED
    assert db.rollbacks == 1
    assert len(await db.get_photo_faces(photo.id)) == 2
    assert db.photos[photo.id].processing_attempts == 1


async def test_completed_photo_is_not_detected_again(db, backend, detection):
    photo = db.add_photo(status=ProcessingStatus.COMPLETED, face_count=3)

    result = await detection.run_detection(photo.id)

    assert result.skipped is True
    assert result.faces_detected == 3
    assert backend.calls == []


async def test_forced_redetection_replaces_unassigned_faces(db, backend, storage, detection, jpeg_bytes):
    photo = db.add_photo(status=ProcessingStatus.COMPLETED, face_count=1)
    storage.objects[photo.storage_key] = jpeg_bytes
    old = db.add_face(photo.id, box(0.0, 0.0, 0.1, 0.1))
    backend.detect_script.append([Fake.region(0.2, 0.2, 0.2, 0.2), Fake.region(0.6, 0.6, 0.2, 0.2)])

    result = await detection.run_detection(photo.id, force=True)

    assert result.faces_detected == 2
    faces = await db.get_photo_faces(photo.id)
    assert old.id not in [f.id for f in faces]
    assert len(faces) == 2
    assert db.photos[photo.id].face_count == 2


async def test_forced_redetection_refused_with_assigned_faces(db, backend, detection):
    photo = db.add_photo(status=ProcessingStatus.COMPLETED, face_count=1)
    person = db.add_person("Ann")
    db.add_face(photo.id, box(0.0, 0.0, 0.1, 0.1), person_id=person.id,
                remote_template_id="0a1b2c3d-1111-2222-3333-444455556666")

    with pytest.raises(ConflictError):
        await detection.run_detection(photo.id, force=True)
    assert backend.calls == []


async def test_unknown_photo_raises(detection):
    with pytest.raises(PhotoNotFoundError):
        await detection.run_detection(999)


async def test_retrigger_after_failed_forced_run_does_not_duplicate_faces(db, backend, storage, detection, jpeg_bytes):
    photo = db.add_photo(status=ProcessingStatus.COMPLETED, face_count=2)
    storage.objects[photo.storage_key] = jpeg_bytes
    db.add_face(photo.id, box(0.0, 0.0, 0.1, 0.1))
    db.add_face(photo.id, box(0.5, 0.5, 0.1, 0.1))
    backend.detect_script.extend([TransientExternalError("throttled")] * 3)

    failed = await detection.run_detection(photo.id, force=True)

    assert failed.status == ProcessingStatus.FAILED
    assert len(await db.get_photo_faces(photo.id)) == 2

    backend.detect_script.append([
        Fake.region(0.1, 0.1, 0.2, 0.2),
        Fake.region(0.4, 0.1, 0.2, 0.2),
        Fake.region(0.7, 0.1, 0.2, 0.2),
    ])

    result = await detection.run_detection(photo.id)

    assert result.status == ProcessingStatus.COMPLETED
    faces = await db.get_photo_faces(photo.id)
    assert len(faces) == 3
    assert db.photos[photo.id].face_count == len(faces)


async def test_rerun_of_failed_photo_with_assigned_face_is_refused(db, backend, detection):
    photo = db.add_photo(status=ProcessingStatus.FAILED)
    person = db.add_person("Ann")
    db.add_face(photo.id, box(0.0, 0.0, 0.1, 0.1), person_id=person.id, is_confirmed=True)

    with pytest.raises(ConflictError):
        await detection.run_detection(photo.id)
    assert backend.calls == []
    assert db.photos[photo.id].processing_status == ProcessingStatus.FAILED


async def test_face_assigned_while_detecting_is_a_conflict(db, backend, detection, photo, monkeypatch):
    person = db.add_person("Ann")
    face = db.add_face(photo.id, box(0.0, 0.0, 0.1, 0.1))
    backend.detect_script.append([Fake.region(0.1, 0.1, 0.2, 0.2)])
    detect = backend.detect

    def detect_while_face_is_labelled(image_bytes):
        db._update_face(face.id, person_id=person.id, is_confirmed=True)
        return detect(image_bytes)

    monkeypatch.setattr(backend, "detect", detect_while_face_is_labelled)

    with pytest.raises(ConflictError):
        await detection.run_detection(photo.id)

    assert [f.id for f in await db.get_photo_faces(photo.id)] == [face.id]
    stored = db.photos[photo.id]
    assert stored.processing_status == ProcessingStatus.PENDING
    assert stored.processing_attempts == 0
    assert backend.calls == ["detect"]


async def test_run_completed_concurrently_is_skipped(db, backend, detection, photo, monkeypatch):
    backend.detect_script.append([Fake.region(0.1, 0.1, 0.2, 0.2), Fake.region(0.5, 0.5, 0.2, 0.2)])
    detect = backend.detect

    def detect_racing_another_run(image_bytes):
        db.add_face(photo.id, box(0.3, 0.3, 0.2, 0.2))
        db._update_photo(photo.id, processing_status=ProcessingStatus.COMPLETED, face_count=1)
        return detect(image_bytes)

    monkeypatch.setattr(backend, "detect", detect_racing_another_run)

    result = await detection.run_detection(photo.id)

    assert result.skipped is True
    assert result.faces_detected == 1
    assert len(await db.get_photo_faces(photo.id)) == 1
