"""
Custom exception hierarchy for the application.
All exceptions inherit from AppException for unified handling.
"""

from typing import Optional, Dict, Any


class AppException(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        status_code: HTTP status code for API responses
        details: Additional error details
    """

    def __init__(
        self,
        message: str,
        code: str = "ERROR",
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API response."""
        result = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# === Not Found Errors ===

class NotFoundError(AppException):
    """Resource not found."""

    def __init__(self, entity: str, identifier: Any = None):
        message = f"{entity} not found"
        if identifier is not None:
            message = f"{entity} '{identifier}' not found"
        super().__init__(
            message=message,
            code="NOT_FOUND",
            status_code=404
        )


class PersonNotFoundError(NotFoundError):
    def __init__(self, person_id: int):
        super().__init__("Person", person_id)


class FaceNotFoundError(NotFoundError):
    def __init__(self, face_id: int):
        super().__init__("Face", face_id)


class PhotoNotFoundError(NotFoundError):
    def __init__(self, photo_id: int):
        super().__init__("Photo", photo_id)


class FaceEncodingNotFoundError(NotFoundError):
    def __init__(self, encoding_id: int):
        super().__init__("Face encoding", encoding_id)


# === Validation Errors ===

class ValidationError(AppException):
    """Input validation failed."""

    def __init__(self, message: str, field: str = None, code: str = "VALIDATION_ERROR"):
        details = {"field": field} if field else {}
        super().__init__(
            message=message,
            code=code,
            status_code=422,
            details=details
        )


class InvalidImageError(ValidationError):
    def __init__(self, reason: str = "Invalid or corrupted image"):
        super().__init__(message=reason, field="image")


class InvalidBoundingBoxError(ValidationError):
    def __init__(self):
        super().__init__(message="Invalid bounding box coordinates", field="bounding_box")


# === Conflict Errors ===

class ConflictError(AppException):
    """Request conflicts with current state. Never retried."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            code="CONFLICT",
            status_code=409,
            details=details
        )


class FaceAlreadyAssignedError(ConflictError):
    def __init__(self, face_id: int, person_id: int):
        super().__init__(
            message=f"Face '{face_id}' is already assigned to person '{person_id}'",
            details={"face_id": face_id, "person_id": person_id}
        )


# === Database Errors ===

class DatabaseError(AppException):
    """Database operation failed."""

    def __init__(self, message: str, operation: str = None):
        details = {"operation": operation} if operation else {}
        super().__init__(
            message=f"Database error: {message}",
            code="DATABASE_ERROR",
            status_code=500,
            details=details
        )


# === External Service Errors ===

class ExternalServiceError(AppException):
    """Recognition service or image storage call failed."""

    retryable = False

    def __init__(self, message: str, operation: str = None, code: str = "EXTERNAL_ERROR", status_code: int = 502):
        details = {"operation": operation} if operation else {}
        super().__init__(
            message=message,
            code=code,
            status_code=status_code,
            details=details
        )


class TransientExternalError(ExternalServiceError):
    """Network error, timeout, throttling. Safe to retry."""

    retryable = True

    def __init__(self, message: str, operation: str = None):
        super().__init__(
            message=message,
            operation=operation,
            code="EXTERNAL_UNAVAILABLE",
            status_code=503
        )


class TerminalExternalError(ExternalServiceError):
    """Malformed image, unsupported format, missing collection. Retrying will not help."""

    def __init__(self, message: str, operation: str = None):
        super().__init__(
            message=message,
            operation=operation,
            code="EXTERNAL_REJECTED",
            status_code=502
        )


class TemplateIndexError(ExternalServiceError):
    """Registering a template failed; the identity commit was rolled back."""

    def __init__(self, reason: str, face_id: int = None):
        super().__init__(
            message=f"Face could not be registered for recognition: {reason}",
            operation="index",
            code="TEMPLATE_INDEX_FAILED",
            status_code=502
        )
        if face_id is not None:
            self.details["face_id"] = face_id
        self.reason = reason
