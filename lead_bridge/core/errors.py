"""Exception hierarchy shared by the CRM client, credential store and workflow."""

from __future__ import annotations

from http import HTTPStatus


class LeadBridgeError(Exception):
    """Base class for failures surfaced by the bridge."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR


class InvalidRequestError(LeadBridgeError):
    """Raised when request parameters are missing or malformed."""

    status_code = HTTPStatus.BAD_REQUEST


class RemoteError(LeadBridgeError):
    """Raised when a CRM call fails or returns an unexpected payload."""

    def __init__(self, message: str, *, http_status: int | None = None) -> None:
        super().__init__(message)
        self.http_status = http_status


class PersistenceError(LeadBridgeError):
    """Raised when the credential store cannot complete an operation."""


class CredentialAlreadyExistsError(PersistenceError):
    """Raised when inserting credentials for a referer that is already stored."""

    status_code = HTTPStatus.CONFLICT

    def __init__(self, referer: str) -> None:
        super().__init__(f"Integration with referer '{referer}' already exists.")
        self.referer = referer


class NotFoundError(LeadBridgeError):
    """Raised when a required entity does not exist."""


class CredentialNotFoundError(NotFoundError):
    """Raised when no stored credentials are available for the request."""


__all__ = [
    "CredentialAlreadyExistsError",
    "CredentialNotFoundError",
    "InvalidRequestError",
    "LeadBridgeError",
    "NotFoundError",
    "PersistenceError",
    "RemoteError",
]
