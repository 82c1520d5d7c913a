"""
Domain models - core business entities.

These are the source of truth for data structures.
All other layers (database clients, services, routers) derive from these.
"""

from models.domain.face import BoundingBox, DetectedFace, NewDetectedFace, ReviewStatus
from models.domain.person import Person
from models.domain.photo import Photo, ProcessingStatus
from models.domain.encoding import FaceEncoding

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
