"""
Request DTOs - API input models.
Used for validating incoming API requests.
"""

from models.requests.recognition import (
    RegisterPhotoRequest,
    AssignFaceRequest,
    ReassignFaceRequest,
    PersonCreate,
    PersonUpdate,
)
from models.requests.common import (
    IdsRequest,
)

__all__ = [
    'RegisterPhotoRequest',
    'AssignFaceRequest',
    'ReassignFaceRequest',
    'PersonCreate',
    'PersonUpdate',
    'IdsRequest',
]
