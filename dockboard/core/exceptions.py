"""
Dock board error taxonomy.

Every failure surfaced to a caller carries a human readable message and a
stable error code. The API layer maps each class to an HTTP status.
"""
from typing import Any, Dict, Optional


class DockBoardError(Exception):
    """Base exception for dock board operations."""

    code = "INTERNAL"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


class NotFoundError(DockBoardError):
    """Trailer, door, yard slot or carrier does not exist."""

    code = "NOT_FOUND"
    status_code = 404


class ConflictError(DockBoardError):
    """Operation collides with current facility state."""

    code = "CONFLICT"
    status_code = 409


class InvalidArgumentError(DockBoardError):
    """Destination or input is not acceptable."""

    code = "INVALID_ARGUMENT"
    status_code = 400


class InternalError(DockBoardError):
    """Persistence read/write failure."""

    code = "INTERNAL"
    status_code = 500
