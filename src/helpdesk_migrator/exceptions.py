"""
Custom exception classes for the helpdesk ticket migration tool.
"""

from __future__ import annotations

from typing import Any


class MigrationError(Exception):
    """Base exception for migration errors."""


class ValidationError(MigrationError):
    """Raised when a request is malformed (non-API path, missing credentials)."""


class RemoteAPIError(MigrationError):
    """Raised when the helpdesk API answers with a non-2xx status."""

    status_code: int
    payload: Any
    retry_after: float | None

    def __init__(
        self, message: str, *, status_code: int, payload: Any = None, retry_after: float | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload
        self.retry_after = retry_after

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429


class MalformedResponseError(MigrationError):
    """Raised when a successful response does not carry the expected entity.

    The call itself succeeded, so the retry policy never repeats it.
    """

    payload: Any

    def __init__(self, message: str, *, payload: Any = None) -> None:
        super().__init__(message)
        self.payload = payload


class RetriesExhaustedError(MigrationError):
    """Raised when a remote call keeps failing after the whole retry budget."""

    last_error: Exception
    attempts: int

    def __init__(self, message: str, *, last_error: Exception, attempts: int) -> None:
        super().__init__(message)
        self.last_error = last_error
        self.attempts = attempts

    @property
    def payload(self) -> Any:
        """Raw error body of the last remote failure, if there was one."""
        if isinstance(self.last_error, RemoteAPIError):
            return self.last_error.payload
        return None


class AuthenticationFailure(MigrationError):
    """Raised when the connection test fails for the source and/or target account."""

    failures: dict[str, Any]

    def __init__(self, message: str, *, failures: dict[str, Any]) -> None:
        super().__init__(message)
        self.failures = failures
