"""
Photo domain model.
"""

from enum import Enum
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class ProcessingStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Photo(BaseModel):
    """Uploaded image and its detection state."""

    id: int
    storage_key: str = Field(..., description="Object key in image storage")
    filename: Optional[str] = None
    processing_status: ProcessingStatus = ProcessingStatus.PENDING
    face_count: int = Field(0, ge=0)
    processing_attempts: int = Field(0, ge=0)
    last_error: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_detected(self) -> bool:
        """Detection finished successfully."""
        return self.processing_status == ProcessingStatus.COMPLETED
