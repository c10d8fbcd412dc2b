"""
Error types for the Roblox game analytics tracker.

This module defines the TrackerError base class and subclasses for domain errors.
Domain errors should be expressed using TrackerError (or subclasses) instead of
building HTTP error payloads directly; the web layer maps each error_code to an
HTTP status.
"""

from __future__ import annotations

from typing import Any


class TrackerError(Exception):
    """
    Base exception class for tracker errors.

    TrackerError instances are caught at the HTTP layer and rendered as a JSON
    payload with a status code derived from error_code.

    Attributes:
        error_code: Internal error code string (e.g., "invalid_argument",
            "not_found", "unavailable", "failed_precondition", "internal").
        message: Human-readable error message.
        details: Optional structured details (e.g., universe id, file path).

    Example:
        >>> raise TrackerError(
        ...     error_code="not_found",
        ...     message="Universe 42 is not being tracked.",
        ...     details={"universe_id": "42"},
        ... )
    """

    def __init__(
        self,
        error_code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize a TrackerError.

        Args:
            error_code: Internal error code string identifying the error category.
            message: Human-readable error message.
            details: Optional dictionary with structured error details.
        """
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.details = details or {}

    def __repr__(self) -> str:
        """Return a detailed string representation."""
        return (
            f"{self.__class__.__name__}("
            f"error_code={self.error_code!r}, "
            f"message={self.message!r}, "
            f"details={self.details!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the error to a dictionary for serialization.

        Returns:
            Dictionary with error_code, message, and details.
        """
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class InvalidArgumentError(TrackerError):
    """
    Error raised when an operation receives invalid input.

    Used for out-of-order samples and malformed parameters.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize an InvalidArgumentError."""
        super().__init__(
            error_code="invalid_argument", message=message, details=details
        )


class NotFoundError(TrackerError):
    """
    Error raised when a requested universe is not among the tracked ones.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize a NotFoundError."""
        super().__init__(error_code="not_found", message=message, details=details)


class UnavailableError(TrackerError):
    """
    Error raised when a required remote resource is unavailable.

    The Roblox Games API failing or timing out maps to this error.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize an UnavailableError."""
        super().__init__(error_code="unavailable", message=message, details=details)


class FailedPreconditionError(TrackerError):
    """
    Error raised when a precondition for the operation is not met.

    For example, starting a poller supervisor that is already running.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize a FailedPreconditionError."""
        super().__init__(
            error_code="failed_precondition", message=message, details=details
        )


class InternalError(TrackerError):
    """
    Error raised for unexpected internal errors.

    Unexpected exceptions reaching the HTTP layer are reported with this code.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize an InternalError."""
        super().__init__(error_code="internal", message=message, details=details)
