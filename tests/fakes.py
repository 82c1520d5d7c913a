"""
In-memory doubles for the database, the recognition service and image storage.

FakeDatabase mirrors PostgresClient's method signatures. transaction()
snapshots all tables and restores them if the block raises, which is enough
to observe rollback behaviour without PostgreSQL.
"""

import copy
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional

from core.exceptions import DatabaseError, TerminalExternalError
from infrastructure.rekognition import RecognitionBackend
from models.domain.encoding import FaceEncoding
from models.domain.face import BoundingBox, DetectedFace, NewDetectedFace, ReviewStatus
from models.domain.person import Person
from models.domain.photo import Photo, ProcessingStatus
from models.recognition_schemas import DetectedRegion, IndexedTemplate, QualityHints, TemplateMatch


def _now():
    return datetime.now(timezone.utc)


def box(left, top, width, height) -> BoundingBox:
    return BoundingBox(left=left, top=top, width=width, height=height)


class FakeDatabase:

    def __init__(self):
        self.photos: Dict[int, Photo] = {}
        self.faces: Dict[int, DetectedFace] = {}
        self.people: Dict[int, Person] = {}
        self.encodings: Dict[int, FaceEncoding] = {}
        self._ids = {"photo": 0, "face": 0, "person": 0, "encoding": 0}
        # method name -> exception raised on the next call
        self.fail_on: Dict[str, Exception] = {}
        self.transactions = 0
        self.rollbacks = 0

    # === Test helpers ===

    def _next_id(self, kind: str) -> int:
        self._ids[kind] += 1
        return self._ids[kind]

    def _maybe_fail(self, name: str):
        exc = self.fail_on.pop(name, None)
        if exc is not None:
            raise exc

    def add_photo(self, storage_key="photos/group.jpg", status=ProcessingStatus.PENDING, face_count=0) -> Photo:
        photo = Photo(
            id=self._next_id("photo"),
            storage_key=storage_key,
            processing_status=status,
            face_count=face_count,
            created_at=_now(),
        )
        self.photos[photo.id] = photo
        return photo

    def add_face(self, photo_id, bounding_box, person_id=None, remote_template_id=None,
                 confidence=None, review_status=ReviewStatus.PENDING, is_confirmed=False) -> DetectedFace:
        face = DetectedFace(
            id=self._next_id("face"),
            photo_id=photo_id,
            person_id=person_id,
            remote_template_id=remote_template_id,
            bounding_box=bounding_box,
            confidence=confidence,
            review_status=review_status,
            is_confirmed=is_confirmed,
            created_at=_now(),
        )
        self.faces[face.id] = face
        return face

    def add_person(self, name="Ann") -> Person:
        person = Person(id=self._next_id("person"), name=name, created_at=_now())
        self.people[person.id] = person
        return person

    def add_encoding(self, person_id, remote_template_id, confidence=99.0) -> FaceEncoding:
        encoding = FaceEncoding(
            id=self._next_id("encoding"),
            person_id=person_id,
            remote_template_id=remote_template_id,
            confidence=confidence,
            created_at=_now(),
        )
        self.encodings[encoding.id] = encoding
        return encoding

    # === Connection handling ===

    @asynccontextmanager
    async def transaction(self):
        snapshot = copy.deepcopy((self.photos, self.faces, self.people, self.encodings, self._ids))
        self.transactions += 1
        try:
            yield self
        except BaseException:
            self.photos, self.faces, self.people, self.encodings, self._ids = snapshot
            self.rollbacks += 1
            raise

    async def connect(self):
        pass

    async def disconnect(self):
        pass

    # === Photos ===

    async def create_photo(self, storage_key, filename=None, conn=None) -> Photo:
        photo = self.add_photo(storage_key)
        photo = photo.model_copy(update={"filename": filename})
        self.photos[photo.id] = photo
        return photo

    async def get_photo(self, photo_id, conn=None, for_update=False) -> Optional[Photo]:
        return self.photos.get(photo_id)

    def _update_photo(self, photo_id, **changes) -> Photo:
        photo = self.photos[photo_id].model_copy(update={**changes, "updated_at": _now()})
        self.photos[photo_id] = photo
        return photo

    async def set_processing_status(self, photo_id, status, conn=None):
        self._update_photo(photo_id, processing_status=status)

    async def record_processing_failure(self, photo_id, error, conn=None) -> int:
        photo = self.photos[photo_id]
        photo = self._update_photo(
            photo_id,
            processing_attempts=photo.processing_attempts + 1,
            last_error=error,
        )
        return photo.processing_attempts

    async def complete_detection(self, photo_id, face_count, conn=None) -> Photo:
        self._maybe_fail("complete_detection")
        return self._update_photo(
            photo_id,
            processing_status=ProcessingStatus.COMPLETED,
            face_count=face_count,
            last_error=None,
        )

    async def mark_detection_failed(self, photo_id, error, conn=None) -> Photo:
        return self._update_photo(photo_id, processing_status=ProcessingStatus.FAILED, last_error=error)

    async def delete_photo(self, photo_id, conn=None) -> int:
        return 1 if self.photos.pop(photo_id, None) else 0

    # === Faces ===

    async def insert_detected_faces(self, photo_id, faces: List[NewDetectedFace], detection_method=None, conn=None):
        self._maybe_fail("insert_detected_faces")
        inserted = []
        for new in faces:
            face = self.add_face(photo_id, new.bounding_box)
            face = face.model_copy(update={
                "quality_score": new.quality_score,
                "detection_confidence": new.detection_confidence,
                "detection_method": detection_method,
            })
            self.faces[face.id] = face
            inserted.append(face)
        return inserted

    async def get_face(self, face_id, conn=None, for_update=False) -> Optional[DetectedFace]:
        return self.faces.get(face_id)

    async def get_photo_faces(self, photo_id, conn=None) -> List[DetectedFace]:
        return [f for f in sorted(self.faces.values(), key=lambda f: f.id) if f.photo_id == photo_id]

    async def get_person_faces(self, person_id, conn=None) -> List[DetectedFace]:
        return [f for f in sorted(self.faces.values(), key=lambda f: f.id) if f.person_id == person_id]

    async def delete_photo_faces(self, photo_id, conn=None) -> int:
        ids = [f.id for f in self.faces.values() if f.photo_id == photo_id]
        for face_id in ids:
            del self.faces[face_id]
        return len(ids)

    async def get_face_template_ids(self, photo_id, conn=None) -> List[str]:
        return sorted({
            f.remote_template_id for f in self.faces.values()
            if f.photo_id == photo_id and f.remote_template_id
        })

    async def get_unshadowed_face_template_ids(self, conn=None) -> List[str]:
        shadowed = {e.remote_template_id for e in self.encodings.values()}
        return sorted({
            f.remote_template_id for f in self.faces.values()
            if f.remote_template_id and f.remote_template_id not in shadowed
        })

    def _update_face(self, face_id, **changes) -> DetectedFace:
        face = self.faces[face_id].model_copy(update=changes)
        self.faces[face_id] = face
        return face

    async def apply_recognition_match(self, face_id, person_id, confidence, review_status,
                                      detection_method, conn=None) -> bool:
        self._maybe_fail("apply_recognition_match")
        face = self.faces[face_id]
        if face.person_id is not None or face.review_status == ReviewStatus.REJECTED:
            return False
        self._update_face(
            face_id,
            person_id=person_id,
            confidence=confidence,
            review_status=review_status,
            detection_method=detection_method,
            is_confirmed=False,
        )
        return True

    async def assign_face(self, face_id, person_id, expected_person_id=None, conn=None) -> Optional[DetectedFace]:
        face = self.faces[face_id]
        if face.person_id != expected_person_id or face.remote_template_id is not None:
            return None
        return self._update_face(
            face_id,
            person_id=person_id,
            is_confirmed=True,
            review_status=ReviewStatus.CONFIRMED,
        )

    async def attach_template(self, face_id, remote_template_id, conn=None) -> DetectedFace:
        self._maybe_fail("attach_template")
        return self._update_face(face_id, remote_template_id=remote_template_id)

    def _clear(self, face_id, review_status=ReviewStatus.PENDING) -> DetectedFace:
        return self._update_face(
            face_id,
            person_id=None,
            remote_template_id=None,
            confidence=None,
            is_confirmed=False,
            review_status=review_status,
        )

    async def clear_assignment(self, face_id, expected_person_id, expected_template_id,
                               review_status=ReviewStatus.PENDING, conn=None) -> Optional[DetectedFace]:
        face = self.faces[face_id]
        if face.person_id != expected_person_id or face.remote_template_id != expected_template_id:
            return None
        return self._clear(face_id, review_status)

    async def revert_person_faces(self, person_id, conn=None) -> int:
        ids = [f.id for f in self.faces.values() if f.person_id == person_id]
        for face_id in ids:
            self._clear(face_id)
        return len(ids)

    async def revert_template_faces(self, template_ids, conn=None) -> int:
        ids = [f.id for f in self.faces.values() if f.remote_template_id in set(template_ids)]
        for face_id in ids:
            self._clear(face_id)
        return len(ids)

    # === People ===

    def _with_stats(self, person: Person) -> Person:
        return person.model_copy(update={
            "face_count": sum(1 for f in self.faces.values() if f.person_id == person.id),
            "encoding_count": sum(1 for e in self.encodings.values() if e.person_id == person.id),
        })

    async def create_person(self, name, conn=None) -> Person:
        self._maybe_fail("create_person")
        return self.add_person(name)

    async def get_person(self, person_id, conn=None) -> Optional[Person]:
        person = self.people.get(person_id)
        return self._with_stats(person) if person else None

    async def find_person_by_name(self, name, conn=None) -> Optional[Person]:
        for person in sorted(self.people.values(), key=lambda p: p.id):
            if person.name.lower() == name.strip().lower():
                return person
        return None

    def _search(self, search):
        people = sorted(self.people.values(), key=lambda p: (p.name, p.id))
        if search:
            people = [p for p in people if search.lower() in p.name.lower()]
        return people

    async def list_people(self, limit=20, offset=0, search=None, conn=None) -> List[Person]:
        return [self._with_stats(p) for p in self._search(search)[offset:offset + limit]]

    async def count_people(self, search=None, conn=None) -> int:
        return len(self._search(search))

    async def rename_person(self, person_id, name, conn=None) -> Optional[Person]:
        if person_id not in self.people:
            return None
        person = self.people[person_id].model_copy(update={"name": name, "updated_at": _now()})
        self.people[person_id] = person
        return person

    async def delete_person(self, person_id, conn=None) -> int:
        if any(e.person_id == person_id for e in self.encodings.values()):
            raise DatabaseError("face_encodings still reference person", operation="execute")
        return 1 if self.people.pop(person_id, None) else 0

    # === Encodings ===

    async def create_encoding(self, person_id, remote_template_id, confidence=None,
                              source_image_ref=None, conn=None) -> FaceEncoding:
        self._maybe_fail("create_encoding")
        if any(e.remote_template_id == remote_template_id for e in self.encodings.values()):
            raise DatabaseError("duplicate key value violates unique constraint", operation="fetchone")
        encoding = self.add_encoding(person_id, remote_template_id, confidence)
        encoding = encoding.model_copy(update={"source_image_ref": source_image_ref})
        self.encodings[encoding.id] = encoding
        return encoding

    async def get_encoding(self, encoding_id, conn=None) -> Optional[FaceEncoding]:
        return self.encodings.get(encoding_id)

    async def get_encodings(self, encoding_ids, conn=None) -> List[FaceEncoding]:
        return [self.encodings[i] for i in sorted(set(encoding_ids)) if i in self.encodings]

    async def get_person_encodings(self, person_id, conn=None) -> List[FaceEncoding]:
        return [e for e in sorted(self.encodings.values(), key=lambda e: e.id) if e.person_id == person_id]

    async def get_encodings_by_templates(self, template_ids, conn=None) -> List[FaceEncoding]:
        wanted = set(template_ids)
        return [e for e in self.encodings.values() if e.remote_template_id in wanted]

    async def list_template_ids(self, conn=None) -> List[str]:
        return sorted(e.remote_template_id for e in self.encodings.values())

    async def delete_encodings(self, encoding_ids, conn=None) -> int:
        deleted = 0
        for encoding_id in set(encoding_ids):
            if self.encodings.pop(encoding_id, None):
                deleted += 1
        return deleted

    async def delete_person_encodings(self, person_id, conn=None) -> int:
        ids = [e.id for e in self.encodings.values() if e.person_id == person_id]
        return await self.delete_encodings(ids)

    async def delete_encodings_by_templates(self, template_ids, conn=None) -> int:
        wanted = set(template_ids)
        ids = [e.id for e in self.encodings.values() if e.remote_template_id in wanted]
        return await self.delete_encodings(ids)


class FakeRecognitionService(RecognitionBackend):
    """
    Scripted recognition service.

    detect_script / search_script are consumed one entry per call; an entry is
    either a result list or an exception to raise. When a script runs out the
    default (empty) result is returned.
    """

    def __init__(self, collection_id="test-faces"):
        self.collection_id = collection_id
        self.templates = set()
        self.detect_script = []
        self.search_script = []
        self.index_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None
        self.list_error: Optional[Exception] = None
        self.calls: List[str] = []
        self.indexed: List[IndexedTemplate] = []
        self.delete_requests: List[List[str]] = []

    @staticmethod
    def _next(script):
        if not script:
            return []
        entry = script.pop(0)
        if isinstance(entry, Exception):
            raise entry
        return entry

    @staticmethod
    def region(left, top, width, height, brightness=80.0, sharpness=60.0, confidence=99.5) -> DetectedRegion:
        return DetectedRegion(
            bounding_box=box(left, top, width, height),
            quality=QualityHints(brightness=brightness, sharpness=sharpness, confidence=confidence),
        )

    @staticmethod
    def match(template_id, similarity, region=None) -> TemplateMatch:
        return TemplateMatch(remote_template_id=template_id, similarity=similarity, matched_region=region)

    def detect(self, image_bytes):
        self.calls.append("detect")
        return self._next(self.detect_script)

    def search(self, image_bytes, min_similarity, max_results, collection_id=None):
        self.calls.append("search")
        return self._next(self.search_script)

    def index(self, image_bytes, external_id, collection_id=None):
        self.calls.append("index")
        if self.index_error is not None:
            raise self.index_error
        template_id = str(uuid.uuid4())
        self.templates.add(template_id)
        indexed = IndexedTemplate(remote_template_id=template_id, confidence=99.9, external_id=external_id)
        self.indexed.append(indexed)
        return indexed

    def delete_templates(self, template_ids, collection_id=None):
        self.calls.append("delete_templates")
        self.delete_requests.append(list(template_ids))
        if self.delete_error is not None:
            raise self.delete_error
        deleted = [t for t in template_ids if t in self.templates]
        self.templates.difference_update(deleted)
        return deleted

    def list_templates(self, collection_id=None):
        self.calls.append("list_templates")
        if self.list_error is not None:
            raise self.list_error
        return sorted(self.templates)


class FakeStorage:

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.read_script = []
        self.reads = 0
        self.deleted: List[str] = []
        self.delete_error: Optional[Exception] = None

    def read(self, key):
        self.reads += 1
        if self.read_script:
            entry = self.read_script.pop(0)
            if isinstance(entry, Exception):
                raise entry
        if key not in self.objects:
            raise TerminalExternalError(f"Image '{key}' not found in storage", operation="read")
        return self.objects[key]

    def delete(self, key):
        if self.delete_error is not None:
            raise self.delete_error
        existed = self.objects.pop(key, None) is not None
        if existed:
            self.deleted.append(key)
        return existed
