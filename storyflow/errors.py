"""Error taxonomy shared by the engine, the service facade and the API."""

from __future__ import annotations

from typing import Any, List, Optional


class StoryflowError(Exception):
    """Base class for errors surfaced to callers."""

    status_code: int = 500
    default_message: str = "Unexpected error"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Any]] = None):
        self.message = message or self.default_message
        self.errors = errors or []
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "message": self.message, "errors": self.errors}


class ValidationError(StoryflowError):
    """Bad or missing input that the caller can correct."""

    status_code = 400
    default_message = "Invalid request"


class UnauthorizedError(StoryflowError):
    """Missing, invalid or expired bearer token."""

    status_code = 401
    default_message = "Unauthorized"


class NotFoundError(StoryflowError):
    """Unknown workflow id."""

    status_code = 404
    default_message = "Not found"


class ConflictError(StoryflowError):
    """Step mismatch, version mismatch or an operation invalid in the current state."""

    status_code = 409
    default_message = "Conflict"


class TransientError(StoryflowError):
    """Retryable failure of the LLM, the database or the issue tracker."""

    status_code = 503
    default_message = "Temporarily unavailable"


class InternalError(StoryflowError):
    status_code = 500


__all__ = [
    "StoryflowError",
    "ValidationError",
    "UnauthorizedError",
    "NotFoundError",
    "ConflictError",
    "TransientError",
    "InternalError",
]
