"""
GridStrike Error Hierarchy

Every failure that crosses the engine boundary is one of a small, closed set
of error kinds. The transport layer maps a kind to a stable client-facing
code; it never has to inspect raw exceptions.

Usage:
    from gridstrike.errors import AlreadySubmittedError, GridStrikeError

    try:
        match.submit_action(user_id, action)
    except GridStrikeError as e:
        return {"error": e.message, "error_code": e.kind.value}
"""

from __future__ import annotations
from enum import Enum
from typing import Any

__all__ = [
    "ErrorKind",
    "GridStrikeError",
    "UnauthenticatedError",
    "NotFoundError",
    "PermissionDeniedError",
    "AlreadySubmittedError",
    "InvalidArgumentError",
    "BoardDecodeError",
    "FailedPreconditionError",
    "MatchFinishedError",
    "InternalError",
]


class ErrorKind(str, Enum):
    """Closed set of externally visible failure kinds."""
    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not-found"
    PERMISSION_DENIED = "permission-denied"
    ALREADY_SUBMITTED = "already-submitted"
    INVALID_ARGUMENT = "invalid-argument"
    FAILED_PRECONDITION = "failed-precondition"
    INTERNAL = "internal"


class GridStrikeError(Exception):
    """Base exception for all GridStrike errors.

    Attributes:
        kind: Closed error category, stable across releases
        message: Human-readable error description
        context: Additional context for debugging
    """
    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"[{self.kind.value}] {self.message} ({ctx})"
        return f"[{self.kind.value}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "context": self.context,
        }


# =============================================================================
# Input rejection
# =============================================================================


class UnauthenticatedError(GridStrikeError):
    """Caller did not identify itself."""
    kind = ErrorKind.UNAUTHENTICATED


class NotFoundError(GridStrikeError):
    """Match or piece does not exist."""
    kind = ErrorKind.NOT_FOUND


class PermissionDeniedError(GridStrikeError):
    """Caller is not a participant, or acts for a piece it does not own."""
    kind = ErrorKind.PERMISSION_DENIED


class AlreadySubmittedError(GridStrikeError):
    """A second action for the same side in the same open turn."""
    kind = ErrorKind.ALREADY_SUBMITTED


class InvalidArgumentError(GridStrikeError):
    """Missing or malformed fields."""
    kind = ErrorKind.INVALID_ARGUMENT


class BoardDecodeError(InvalidArgumentError):
    """A persisted board document could not be decoded.

    Attributes:
        errors: Individual field problems, in document order
    """

    def __init__(
        self,
        message: str,
        errors: list[str] | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context)
        self.errors = errors or []

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


# =============================================================================
# State preconditions
# =============================================================================


class FailedPreconditionError(GridStrikeError):
    """The match is not in a state that accepts this request."""
    kind = ErrorKind.FAILED_PRECONDITION


class MatchFinishedError(FailedPreconditionError):
    """The match already has a result; the board is frozen."""


class InternalError(GridStrikeError):
    """Unexpected failure inside the engine."""
    kind = ErrorKind.INTERNAL
