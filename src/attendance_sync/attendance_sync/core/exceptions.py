class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class SyncFailure(DomainError):
    """Raised by a sync endpoint when the remote side rejects a batch."""


class LocalPersistenceFailure(DomainError):
    """Raised by a storage port when the durable blob cannot be read or written."""
