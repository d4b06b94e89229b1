"""Domain exceptions for the task endpoints.

Each carries the HTTP status it maps to. A message, when present, is rendered
as ``{"error": message}``; without one the response body is empty.
"""
from typing import Any, Dict, Optional, Sequence

from fastapi import status


class TaskServiceError(Exception):
    """Base class for errors rendered by the task exception handler."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.__class__.__name__)
        self.message = message


class TaskValidationError(TaskServiceError):
    """Payload does not match the expected schema (400)."""

    status_code = status.HTTP_400_BAD_REQUEST


class InvalidUpdateError(TaskValidationError):
    """Update payload names a field outside the allow-list (400)."""

    def __init__(self, message: str = "Invalid updates!"):
        super().__init__(message)


class TaskNotFoundError(TaskServiceError):
    """Task missing or owned by someone else (404)."""

    status_code = status.HTTP_404_NOT_FOUND


class PersistenceError(TaskServiceError):
    """Unexpected database failure (500)."""


class UploadError(TaskServiceError):
    """Image upload or removal rejected (400)."""

    status_code = status.HTTP_400_BAD_REQUEST


class ImageTranscodeError(UploadError):
    """Uploaded bytes could not be converted to PNG (400)."""


def describe_validation_errors(errors: Sequence[Dict[str, Any]]) -> str:
    """Flatten pydantic error dicts into one readable message."""
    parts = []
    for error in errors:
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"
