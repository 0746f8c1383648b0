"""Custom exception hierarchy for the credential lifecycle."""

from __future__ import annotations


class ApplicationError(Exception):
    """Base exception for bridge failures surfaced to callers."""


class AuthorizationError(ApplicationError):
    """Raised when an authorization code is missing or rejected by Spotify."""


class UnauthorizedError(ApplicationError):
    """Raised when no credential has been stored yet; the user must log in."""


class RefreshError(ApplicationError):
    """Raised when Spotify rejects the stored refresh token.

    The credential is unusable from then on and the user has to go through
    the login flow again.
    """


class CredentialStoreError(ApplicationError, OSError):
    """Raised when the credential file cannot be read or written."""


__all__ = [
    "ApplicationError",
    "AuthorizationError",
    "UnauthorizedError",
    "RefreshError",
    "CredentialStoreError",
]
