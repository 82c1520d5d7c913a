"""
Common request models used across endpoints.
"""

from typing import List
from pydantic import BaseModel, Field


class IdsRequest(BaseModel):
    """Request with multiple IDs."""

    ids: List[int] = Field(..., min_length=1, description="List of entity IDs")
