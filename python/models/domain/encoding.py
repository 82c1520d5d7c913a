"""
FaceEncoding domain model.
Local shadow of one template stored in the recognition service collection.
"""

from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class FaceEncoding(BaseModel):

    id: int
    person_id: int
    remote_template_id: str = Field(..., min_length=1)
    confidence: Optional[float] = Field(None, ge=0, le=100)
    source_image_ref: Optional[str] = Field(None, description="Storage key of the image the template came from")
    created_at: Optional[datetime] = None
