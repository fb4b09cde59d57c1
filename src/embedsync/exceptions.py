"""Custom exception hierarchy for the embedding pipeline."""


class EmbedSyncError(Exception):
    """Base exception for all embedsync errors."""


class ValidationError(EmbedSyncError):
    """Raised for unsupported tables, modes, models, or missing credentials."""


class BatchJobFailedError(ValidationError):
    """Raised when a provider batch job ended as failed, cancelled, or expired."""


class ProviderError(EmbedSyncError):
    """Raised on embedding provider failures (network, rate limits, API errors)."""


class NotFoundError(EmbedSyncError):
    """Raised when a tenant configuration or record does not exist."""


class StorageError(EmbedSyncError):
    """Raised on storage backend failures (DB connection, query errors, etc.)."""
