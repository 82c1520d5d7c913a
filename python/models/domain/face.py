"""
Face domain model.
Represents a detected face in a photo.
"""

from enum import Enum
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class ReviewStatus(str, Enum):
    PENDING = "pending"
    REVIEW = "review"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class BoundingBox(BaseModel):
    """
    Face bounding box in image-relative units.

    All four values are fractions of the image size in [0, 1].
    """

    model_config = ConfigDict(frozen=True)

    left: float = Field(..., ge=0, le=1, description="Left edge as fraction of image width")
    top: float = Field(..., ge=0, le=1, description="Top edge as fraction of image height")
    width: float = Field(..., ge=0, le=1, description="Box width as fraction of image width")
    height: float = Field(..., ge=0, le=1, description="Box height as fraction of image height")

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def area(self) -> float:
        """Bounding box area."""
        return self.width * self.height

    def intersection_area(self, other: "BoundingBox") -> float:
        """Area shared with another box (0 if disjoint)."""
        overlap_left = max(self.left, other.left)
        overlap_top = max(self.top, other.top)
        overlap_right = min(self.right, other.right)
        overlap_bottom = min(self.bottom, other.bottom)

        if overlap_right <= overlap_left or overlap_bottom <= overlap_top:
            return 0.0
        return (overlap_right - overlap_left) * (overlap_bottom - overlap_top)

    def overlap_ratio(self, other: "BoundingBox") -> float:
        """
        Intersection over this box's own area.

        Unlike IoU this is asymmetric: a large service-reported region that fully
        covers a small detected face still yields 1.0 for that face.
        """
        if self.area <= 0:
            return 0.0
        return self.intersection_area(other) / self.area

    @classmethod
    def clamped(cls, left: float, top: float, width: float, height: float) -> "BoundingBox":
        """
        Build a box from raw service values, clipping it to the image.

        Services report faces cut by the image edge with negative offsets or
        extents past 1.0.
        """
        left = float(left or 0.0)
        top = float(top or 0.0)
        right = min(1.0, left + float(width or 0.0))
        bottom = min(1.0, top + float(height or 0.0))
        left = min(max(0.0, left), 1.0)
        top = min(max(0.0, top), 1.0)
        return cls(
            left=left,
            top=top,
            width=max(0.0, right - left),
            height=max(0.0, bottom - top),
        )


class NewDetectedFace(BaseModel):
    """Face produced by detection, not yet persisted."""

    bounding_box: BoundingBox
    quality_score: Optional[float] = Field(None, ge=0, le=100)
    detection_confidence: Optional[float] = Field(None, ge=0, le=100)


class DetectedFace(BaseModel):
    """Detected face in a photo."""

    id: int = Field(..., description="Unique face ID")
    photo_id: int = Field(..., description="Photo this face belongs to")
    person_id: Optional[int] = Field(None, description="Assigned person ID")
    remote_template_id: Optional[str] = Field(
        None, description="Template registered with the recognition service for this face"
    )

    bounding_box: BoundingBox = Field(..., description="Face location in image")
    quality_score: Optional[float] = Field(None, description="Sharpness/brightness derived quality")
    detection_confidence: Optional[float] = Field(None, description="Detector confidence")

    # Recognition
    confidence: Optional[float] = Field(None, ge=0, le=100, description="Match similarity")
    review_status: ReviewStatus = Field(ReviewStatus.PENDING)
    is_confirmed: bool = Field(False, description="Assignment committed by a user")
    detection_method: Optional[str] = None

    created_at: Optional[datetime] = None

    @property
    def is_assigned(self) -> bool:
        return self.person_id is not None

    @property
    def has_template(self) -> bool:
        return self.remote_template_id is not None
