"""Typed errors raised by the order and table services.

Each error carries a stable ``code`` and the HTTP status the API layer should
answer with, so that callers can render a specific message (for example
"table already has an active order") rather than a generic failure.
"""

from __future__ import annotations

from typing import Any


class PosError(Exception):
    """Base class for errors surfaced to API callers."""

    code = "POS_ERROR"
    status_code = 400

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFound(PosError):
    """Missing restaurant, table or order."""

    code = "NOT_FOUND"
    status_code = 404


class Conflict(PosError):
    """A uniqueness rule would be violated."""

    code = "CONFLICT"
    status_code = 409


class InvalidTransition(PosError):
    """The requested status change is not allowed."""

    code = "INVALID_TRANSITION"
    status_code = 409


class AlreadyCompleted(PosError):
    """The order was completed earlier; completion is applied once."""

    code = "ALREADY_COMPLETED"
    status_code = 409


class ValidationError(PosError):
    """Missing fields or non-positive prices and quantities."""

    code = "VALIDATION_ERROR"
    status_code = 422


__all__ = [
    "PosError",
    "NotFound",
    "Conflict",
    "InvalidTransition",
    "AlreadyCompleted",
    "ValidationError",
]
