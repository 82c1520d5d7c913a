"""
Models package - data structures for the application.

Subpackages:
- domain/ - Domain models (core business entities)
- requests/ - Request DTOs (API input)
- responses/ - Service results and API output

- recognition_schemas.py - Typed results of the external recognition service
"""

# Re-export commonly used models
from models.domain import (
    BoundingBox,
    DetectedFace,
    NewDetectedFace,
    ReviewStatus,
    Person,
    Photo,
    ProcessingStatus,
    FaceEncoding,
)

__all__ = [
    'BoundingBox',
    'DetectedFace',
    'NewDetectedFace',
    'ReviewStatus',
    'Person',
    'Photo',
    'ProcessingStatus',
    'FaceEncoding',
]
