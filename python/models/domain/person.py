"""
Person domain model.
Represents a named identity that faces are assigned to.
"""

from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class Person(BaseModel):
    """Full person model."""

    id: int = Field(..., description="Unique person ID")
    name: str = Field(..., min_length=1, max_length=255, description="Display name")

    # Statistics (filled by list queries only)
    face_count: Optional[int] = Field(None, ge=0, description="Faces assigned to this person")
    encoding_count: Optional[int] = Field(None, ge=0, description="Templates registered for this person")

    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")
