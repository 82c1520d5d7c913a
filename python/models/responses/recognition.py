"""
Result models returned by the detection, recognition, assignment and
reconciliation services (and serialized as-is by the routers).
"""

from typing import Optional, List
from pydantic import BaseModel, Field

from models.domain.encoding import FaceEncoding
from models.domain.face import DetectedFace, ReviewStatus
from models.domain.person import Person
from models.domain.photo import Photo, ProcessingStatus


class DetectionResult(BaseModel):
    """Outcome of one detection run for a photo."""

    photo_id: int
    status: ProcessingStatus
    faces_detected: int = 0
    attempts: int = Field(0, description="Attempts made during this run")
    skipped: bool = Field(False, description="Photo was already processed; nothing ran")
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == ProcessingStatus.COMPLETED


class BoundMatch(BaseModel):
    """A search match that was bound to a detected face."""

    face_id: int
    person_id: int
    remote_template_id: str
    similarity: float
    overlap_ratio: float
    review_status: ReviewStatus


class RecognitionResult(BaseModel):
    """Outcome of one recognition pass for a photo."""

    photo_id: int
    total_matches: int = 0
    faces_recognized: int = Field(0, description="Bound matches auto-confirmed")
    faces_needing_review: int = Field(0, description="Bound matches queued for review")
    unbound_matches: int = Field(0, description="Matches discarded as unbindable")
    unknown_templates: int = Field(0, description="Matches whose template has no local shadow")
    threshold_used: float = 0.0
    attempts: int = 0
    skipped: bool = False
    reason: Optional[str] = None
    error: Optional[str] = None
    matches: List[BoundMatch] = Field(default_factory=list)


class PipelineResult(BaseModel):
    """Detection followed by recognition for one photo."""

    detection: DetectionResult
    recognition: Optional[RecognitionResult] = None


class CommitResult(BaseModel):
    """Successful identity commit."""

    person: Person
    face: DetectedFace
    encoding: FaceEncoding
    person_created: bool = False


class ReassignResult(BaseModel):
    face: DetectedFace
    previous_person_id: Optional[int] = None
    previous_template_id: Optional[str] = None
    template_removed: bool = Field(False, description="Old template deleted from the collection")
    encoding: Optional[FaceEncoding] = Field(None, description="Template registered for the new person")


class TemplateCleanup(BaseModel):
    """Outcome of a best-effort template deletion. Never raises."""

    requested: List[str] = Field(default_factory=list)
    deleted: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class DeletionSummary(BaseModel):
    """Row counts affected by a delete operation."""

    person_id: Optional[int] = None
    photo_id: Optional[int] = None
    encodings_deleted: int = 0
    faces_reverted: int = 0
    faces_deleted: int = 0
    photos_deleted: int = 0
    people_deleted: int = 0
    templates_deleted: int = Field(0, description="Templates the collection confirmed as deleted")
    template_cleanup_error: Optional[str] = None
    image_deleted: Optional[bool] = None


class DriftReport(BaseModel):
    """Symmetric difference between local FaceEncoding rows and remote templates."""

    collection_id: str
    local_count: int
    remote_count: int
    local_only: List[str] = Field(default_factory=list, description="Shadows with no remote template")
    remote_only: List[str] = Field(default_factory=list, description="Remote templates with no shadow")
    unshadowed_face_templates: List[str] = Field(
        default_factory=list,
        description="Template ids referenced by faces but missing a FaceEncoding row"
    )

    @property
    def in_sync(self) -> bool:
        return not (self.local_only or self.remote_only or self.unshadowed_face_templates)


class PhotoWithFaces(BaseModel):
    photo: Photo
    faces: List[DetectedFace]
