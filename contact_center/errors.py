"""Domain error taxonomy shared by services, routers and the worker.

Every error carries the HTTP status the API layer should answer with, so the
routers can translate them without a per-exception mapping table.
"""

from __future__ import annotations


class ContactCenterError(Exception):
    """Base class for errors raised by the contact-center core."""

    status_code: int = 500
    #: When ``True`` the request transaction is committed before the error is
    #: surfaced, keeping state changes that are part of the outcome.
    commit_on_error: bool = False

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__doc__ or self.__class__.__name__)
        self.message = str(self.args[0])


class AuthenticationError(ContactCenterError):
    """Missing or invalid credentials."""

    status_code = 401


class ValidationError(ContactCenterError):
    """Request payload failed validation."""

    status_code = 400


class NotFoundError(ContactCenterError):
    """Requested entity does not exist."""

    status_code = 404


class ConflictError(ContactCenterError):
    """Entity already exists."""

    status_code = 409


class RateLimitError(ContactCenterError):
    """Too many requests for the same key within the window."""

    status_code = 429


class UpstreamError(ContactCenterError):
    """A vendor API call failed or returned a non-2xx response."""

    status_code = 502

    def __init__(self, message: str = "", *, provider: str | None = None, status: int | None = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.status = status


class ConfigurationError(ContactCenterError):
    """A required integration is not configured."""

    status_code = 503


class StoreConflictError(ContactCenterError):
    """A unique-key race could not be resolved by retrying as an update."""

    status_code = 500


class OtpVerificationError(ValidationError):
    """OTP verification was rejected.

    ``reason`` is recorded in the audit trail; ``message`` is the generic text
    returned to the caller.
    """

    commit_on_error = True

    def __init__(self, message: str, *, reason: str) -> None:
        super().__init__(message)
        self.reason = reason


__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "ConflictError",
    "ContactCenterError",
    "NotFoundError",
    "OtpVerificationError",
    "RateLimitError",
    "StoreConflictError",
    "UpstreamError",
    "ValidationError",
]
