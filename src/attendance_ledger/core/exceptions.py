class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class CacheError(DomainError):
    """Raised when the local cache blob cannot be written."""


class RemoteStoreError(DomainError):
    """Raised when the remote record store cannot be reached."""
