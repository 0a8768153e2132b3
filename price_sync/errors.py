"""
Exception hierarchy for the sync engine and its clients.
"""

from typing import Optional


class PriceSyncError(Exception):
    """Base exception for price sync errors."""
    pass


class ConfigurationError(PriceSyncError):
    """No client is registered for a store's platform, or settings are missing."""
    pass


class CredentialError(PriceSyncError):
    """Stored store credentials could not be decrypted."""
    pass


class ClientError(PriceSyncError):
    """Base exception for platform and source client errors."""
    pass


class AuthenticationError(ClientError):
    """Credentials rejected or the authentication probe did not complete."""
    pass


class NotAuthenticatedError(ClientError):
    """A data method was called before authenticate() succeeded."""
    pass


class FetchError(ClientError):
    """Catalogue retrieval failed."""
    pass


class UpdateError(ClientError):
    """A single price push was rejected."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
