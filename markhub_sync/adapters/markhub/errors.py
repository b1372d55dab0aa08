"""Exception hierarchy for the Markhub client."""

from __future__ import annotations


class MarkhubClientError(Exception):
    """Base exception for Markhub client errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthError(MarkhubClientError):
    """The server rejected the stored token (401/403) or the credentials."""


class NotFoundError(MarkhubClientError):
    """The record or endpoint does not exist (404)."""


class NetworkError(MarkhubClientError):
    """Transport failure or timeout; the request may not have reached the server."""


class MarkhubAPIError(MarkhubClientError):
    """Any other non-2xx response."""

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message, status_code)
        self.body = body
