"""
Request models for photo, face and people endpoints.
"""

from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator


class RegisterPhotoRequest(BaseModel):
    """Register an image that is already in storage."""

    storage_key: str = Field(..., min_length=1, max_length=500)
    filename: Optional[str] = Field(None, max_length=255)


class AssignFaceRequest(BaseModel):
    """Assign a face to a new identity (name) or an existing one (person_id)."""

    name: Optional[str] = Field(None, max_length=255)
    person_id: Optional[int] = Field(None, gt=0)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

    @model_validator(mode="after")
    def exactly_one_target(self):
        if (self.name is None) == (self.person_id is None):
            raise ValueError("Provide exactly one of 'name' or 'person_id'")
        return self


class ReassignFaceRequest(BaseModel):
    """person_id=None unassigns the face."""

    person_id: Optional[int] = Field(None, gt=0)


class PersonCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class PersonUpdate(PersonCreate):
    pass
