"""
Typed results of the external recognition service.

Every backend converts its raw response into these models at the boundary,
so services never look inside vendor dictionaries.
"""

from pydantic import BaseModel, Field
from typing import Optional

from models.domain.face import BoundingBox


class QualityHints(BaseModel):
    """Quality signals reported by detection (all 0-100)."""
    brightness: Optional[float] = Field(None, ge=0, le=100)
    sharpness: Optional[float] = Field(None, ge=0, le=100)
    confidence: Optional[float] = Field(None, ge=0, le=100)

    def quality_score(self) -> Optional[float]:
        """
        Mean of brightness and sharpness; detection confidence when the
        service reports no brightness.
        """
        if self.brightness is not None:
            return (self.brightness + (self.sharpness or 0.0)) / 2
        return self.confidence


class DetectedRegion(BaseModel):
    """Result of detect(): one face found in the image."""
    bounding_box: BoundingBox
    quality: QualityHints = Field(default_factory=QualityHints)


class TemplateMatch(BaseModel):
    """Result of search(): one stored template similar to a face in the image."""
    remote_template_id: str = Field(..., min_length=1)
    similarity: float = Field(..., ge=0, le=100)
    matched_region: Optional[BoundingBox] = Field(
        None, description="Region of the searched image the match refers to, if reported"
    )


class IndexedTemplate(BaseModel):
    """Result of index(): the template created in the collection."""
    remote_template_id: str = Field(..., min_length=1)
    confidence: Optional[float] = Field(None, ge=0, le=100)
    external_id: Optional[str] = None
