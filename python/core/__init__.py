"""
Core package - foundation for the application.

Modules:
- config.py - Application settings via Pydantic Settings
- exceptions.py - Custom exception hierarchy
- responses.py - Unified API response format
- logging.py - Centralized logging configuration
- retry.py - Bounded retry with exponential backoff
"""

from core.config import settings, VERSION
from core.exceptions import (
    AppException,
    NotFoundError,
    ValidationError,
    ConflictError,
    DatabaseError,
    ExternalServiceError,
    TransientExternalError,
    TerminalExternalError,
    TemplateIndexError,
)
from core.responses import ApiResponse

__all__ = [
    'settings',
    'VERSION',
    'AppException',
    'NotFoundError',
    'ValidationError',
    'ConflictError',
    'DatabaseError',
    'ExternalServiceError',
    'TransientExternalError',
    'TerminalExternalError',
    'TemplateIndexError',
    'ApiResponse',
]
