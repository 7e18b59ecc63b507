"""Sync-specific exceptions for error handling."""

from docsync.core.exceptions import DocsyncException


class EntityProcessingError(DocsyncException):
    """Raised when an individual source item cannot be processed.

    This is a recoverable error - the sync continues with other items.
    The item is logged, emitted as an errored ChunkSyncResult and counted in
    the pipeline's "failed" metric.

    Examples:
    - Export or download of one file failed (404, unsupported format)
    - Message body could not be decoded
    - Content conversion failed

    Usage:
        raise EntityProcessingError(f"Failed to export file {file_id}: {reason}")
    """

    pass


class SyncFailureError(DocsyncException):
    """Raised when a connector-level error should abort the whole sync.

    This is a non-recoverable error for the current run - the producer stops,
    the pipeline drains what was already emitted and ``last_sync`` is left
    unchanged so the connector is retried on the next stale check.

    Examples:
    - Listing API still failing after all retries
    - Missing required configuration

    Usage:
        raise SyncFailureError("Drive files.list failed after retries")
    """

    pass


class EmbeddingError(DocsyncException):
    """Raised when the embedding boundary cannot produce a vector for a text.

    Fatal to the single chunk only; the pipeline logs and skips it.
    """

    pass


class VectorStoreError(DocsyncException):
    """Raised when the vector store rejects a write or delete."""

    pass
