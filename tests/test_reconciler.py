import pytest

from core.exceptions import (
    ConflictError,
    FaceEncodingNotFoundError,
    FaceNotFoundError,
    PersonNotFoundError,
    PhotoNotFoundError,
    TemplateIndexError,
    TransientExternalError,
)
from models.domain.face import ReviewStatus
from models.domain.photo import ProcessingStatus
from tests.fakes import box

TEMPLATE = "7f3c9e2a-5b1d-4c8e-9a6f-0d2e4b8c1a3f"


@pytest.fixture
def photo(db, storage, jpeg_bytes):
    photo = db.add_photo("photos/match-day.jpg", status=ProcessingStatus.COMPLETED, face_count=2)
    storage.objects[photo.storage_key] = jpeg_bytes
    return photo


@pytest.fixture
def committed(db, backend, photo):
    """A face committed to a person, with its template in the collection."""
    person = db.add_person("Ann")
    face = db.add_face(
        photo.id,
        box(0.1, 0.1, 0.2, 0.2),
        person_id=person.id,
        remote_template_id=TEMPLATE,
        confidence=82.3,
        review_status=ReviewStatus.CONFIRMED,
        is_confirmed=True,
    )
    encoding = db.add_encoding(person.id, TEMPLATE)
    backend.templates.add(TEMPLATE)
    return person, face, encoding


# === Delete person ===

async def test_delete_person_reverts_faces_and_removes_templates(db, backend, reconciler, committed):
    person, face, encoding = committed

    summary = await reconciler.delete_person(person.id)

    assert summary.people_deleted == 1
    assert summary.encodings_deleted == 1
    assert summary.faces_reverted == 1
    assert summary.templates_deleted == 1
    assert person.id not in db.people
    assert db.encodings == {}
    assert TEMPLATE not in backend.templates

    reverted = db.faces[face.id]
    assert reverted.person_id is None
    assert reverted.remote_template_id is None
    assert reverted.confidence is None
    assert reverted.is_confirmed is False
    assert reverted.review_status == ReviewStatus.PENDING


async def test_delete_person_survives_remote_failure(db, backend, reconciler, committed):
    person, face, encoding = committed
    backend.delete_error = TransientExternalError("throttled")

    summary = await reconciler.delete_person(person.id)

    assert summary.template_cleanup_error == "throttled"
    assert summary.people_deleted == 1
    assert db.faces[face.id].person_id is None
    # left behind remotely, picked up by the drift audit
    report = await reconciler.audit_drift()
    assert report.remote_only == [TEMPLATE]


async def test_delete_person_reverts_recognition_proposals(db, reconciler, photo):
    person = db.add_person("Bob")
    face = db.add_face(photo.id, box(0.5, 0.5, 0.2, 0.2), person_id=person.id,
                       confidence=70.0, review_status=ReviewStatus.REVIEW)

    summary = await reconciler.delete_person(person.id)

    assert summary.faces_reverted == 1
    assert summary.templates_deleted == 0
    assert db.faces[face.id].person_id is None


async def test_delete_unknown_person(reconciler):
    with pytest.raises(PersonNotFoundError):
        await reconciler.delete_person(42)


# === Delete photo ===

async def test_delete_photo_removes_faces_encodings_and_image(db, backend, storage, reconciler, photo, committed):
    person, face, encoding = committed
    db.add_face(photo.id, box(0.6, 0.1, 0.2, 0.2))

    summary = await reconciler.delete_photo(photo.id)

    assert summary.faces_deleted == 2
    assert summary.encodings_deleted == 1
    assert summary.photos_deleted == 1
    assert summary.image_deleted is True
    assert db.photos == {}
    assert db.faces == {}
    assert db.encodings == {}
    # the person outlives the photo
    assert person.id in db.people
    assert TEMPLATE not in backend.templates
    assert storage.deleted == [photo.storage_key]


async def test_delete_photo_tolerates_storage_failure(db, storage, reconciler, photo):
    storage.delete_error = RuntimeError("bucket unreachable")

    summary = await reconciler.delete_photo(photo.id)

    assert summary.photos_deleted == 1
    assert summary.image_deleted is False


async def test_delete_unknown_photo(reconciler):
    with pytest.raises(PhotoNotFoundError):
        await reconciler.delete_photo(42)


async def test_placeholder_templates_never_reach_the_service(db, backend, reconciler, photo):
    person = db.add_person("Legacy")
    db.add_face(photo.id, box(0.1, 0.1, 0.2, 0.2), person_id=person.id,
                remote_template_id="placeholder-face-1", is_confirmed=True)
    db.add_encoding(person.id, "placeholder-face-1")

    summary = await reconciler.delete_person(person.id)

    assert summary.encodings_deleted == 1
    assert backend.delete_requests == []


# === Reassign ===

async def test_reassign_to_nobody_clears_face(db, backend, reconciler, committed):
    person, face, encoding = committed

    result = await reconciler.reassign(face.id, None)

    assert result.previous_person_id == person.id
    assert result.previous_template_id == TEMPLATE
    assert result.template_removed is True
    assert result.face.person_id is None
    assert result.face.remote_template_id is None
    assert db.encodings == {}
    assert backend.templates == set()


async def test_reassign_to_other_person_registers_new_template(db, backend, reconciler, committed):
    person, face, encoding = committed
    bob = db.add_person("Bob")

    result = await reconciler.reassign(face.id, bob.id)

    stored = db.faces[face.id]
    assert stored.person_id == bob.id
    assert stored.remote_template_id not in (None, TEMPLATE)
    assert backend.templates == {stored.remote_template_id}
    assert [e.person_id for e in db.encodings.values()] == [bob.id]
    assert result.encoding.remote_template_id == stored.remote_template_id


async def test_reassign_index_failure_leaves_face_unassigned(db, backend, reconciler, committed):
    person, face, encoding = committed
    bob = db.add_person("Bob")
    backend.index_error = TransientExternalError("timeout")

    with pytest.raises(TemplateIndexError):
        await reconciler.reassign(face.id, bob.id)

    stored = db.faces[face.id]
    assert stored.person_id is None
    assert stored.remote_template_id is None
    assert db.encodings == {}


async def test_reassign_to_same_person_is_a_no_op(db, backend, reconciler, committed):
    person, face, encoding = committed

    result = await reconciler.reassign(face.id, person.id)

    assert result.face.remote_template_id == TEMPLATE
    assert backend.calls == []


async def test_reassign_of_face_changed_meanwhile_is_a_conflict(db, reconciler, committed, monkeypatch):
    person, face, encoding = committed
    stale = db.faces[face.id]
    other = db.add_person("Bob")
    other_template = "9d8c7b6a-1111-2222-3333-444455556666"
    db._update_face(face.id, person_id=other.id, remote_template_id=other_template)
    db.add_encoding(other.id, other_template)

    async def stale_get_face(face_id, conn=None, for_update=False):
        return stale

    monkeypatch.setattr(db, "get_face", stale_get_face)

    with pytest.raises(ConflictError):
        await reconciler.reassign(face.id, None)

    assert db.rollbacks == 1
    stored = db.faces[face.id]
    assert stored.person_id == other.id
    assert stored.remote_template_id == other_template
    assert encoding.id in db.encodings


async def test_reassign_unknown_face_or_person(reconciler, committed):
    person, face, encoding = committed
    with pytest.raises(FaceNotFoundError):
        await reconciler.reassign(999, None)
    with pytest.raises(PersonNotFoundError):
        await reconciler.reassign(face.id, 999)


# === Encodings ===

async def test_delete_encoding_reverts_its_face(db, backend, reconciler, committed):
    person, face, encoding = committed

    summary = await reconciler.delete_encoding(encoding.id)

    assert summary.encodings_deleted == 1
    assert summary.faces_reverted == 1
    assert db.faces[face.id].person_id is None
    assert person.id in db.people


async def test_delete_unknown_encoding(reconciler):
    with pytest.raises(FaceEncodingNotFoundError):
        await reconciler.delete_encoding(404)


async def test_bulk_delete_ignores_unknown_ids(db, reconciler, committed):
    person, face, encoding = committed

    summary = await reconciler.delete_encodings([encoding.id, 404])

    assert summary.encodings_deleted == 1
    assert (await reconciler.delete_encodings([404])).encodings_deleted == 0


# === Drift ===

async def test_drift_audit_reports_both_directions(db, backend, reconciler, committed):
    person, face, encoding = committed
    stale = "11111111-2222-3333-4444-555555555555"
    orphan = "99999999-8888-7777-6666-555555555555"
    db.add_encoding(person.id, stale)
    backend.templates.add(orphan)

    report = await reconciler.audit_drift()

    assert report.collection_id == "test-faces"
    assert report.local_only == [stale]
    assert report.remote_only == [orphan]
    assert report.in_sync is False
    # the audit only reports
    assert stale in {e.remote_template_id for e in db.encodings.values()}
    assert orphan in backend.templates


async def test_drift_audit_in_sync(reconciler, committed):
    report = await reconciler.audit_drift()
    assert report.in_sync is True
    assert report.local_count == report.remote_count == 1
