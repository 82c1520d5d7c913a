"""
Database services package - modular PostgresClient implementation.

Domain mixins are combined into a single PostgresClient; every method accepts
an optional ``conn`` so callers can group writes inside ``transaction()``.
"""

from .base_client import BaseClient
from .photos_client import PhotosClient
from .faces_client import FacesClient
from .people_client import PeopleClient
from .encodings_client import EncodingsClient


class PostgresClient(
    BaseClient,
    PhotosClient,
    FacesClient,
    PeopleClient,
    EncodingsClient,
):
    """Unified client combining all domain-specific clients."""
    pass


_db_client = None


def get_db_client() -> PostgresClient:
    """Get singleton PostgresClient instance."""
    global _db_client
    if _db_client is None:
        _db_client = PostgresClient()
    return _db_client


__all__ = [
    'PostgresClient',
    'get_db_client',
    'BaseClient',
    'PhotosClient',
    'FacesClient',
    'PeopleClient',
    'EncodingsClient',
]
