from __future__ import annotations

from typing import Any


class ToolTrackerError(Exception):
    """Base class for every workflow failure surfaced to callers."""

    status_code = 400

    def __init__(self, message: str, error_code: str | None = None, details: dict[str, Any] | None = None):
        self.message = message
        self.error_code = error_code or type(self).__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        return {
            "success": False,
            "error": self.message,
            "kind": type(self).__name__,
            "errorCode": self.error_code,
            "details": self.details,
        }


class ValidationError(ToolTrackerError):
    """Malformed or missing input."""

    status_code = 400


class NotFound(ToolTrackerError):
    status_code = 404


class Unauthorized(ToolTrackerError):
    """Admin-only operation attempted without the admin role."""

    status_code = 403


class InvalidTransition(ToolTrackerError):
    """Loan or tool is not in a state that allows the operation."""

    status_code = 409


class ToolUnavailable(ToolTrackerError):
    status_code = 409


class Conflict(ToolTrackerError):
    """A concurrent transition won the race."""

    status_code = 409
