"""Base vector store interface."""

from abc import ABC, abstractmethod
from typing import List, Optional

from docsync.core.logging import ContextualLogger
from docsync.core.logging import logger as default_logger
from docsync.platform.entities import AddVectorItem


class BaseVectorStore(ABC):
    """Destination for embedded chunks."""

    def __init__(self, logger: Optional[ContextualLogger] = None):
        """Initialize the vector store."""
        self._logger = logger

    @property
    def logger(self) -> ContextualLogger:
        """Get the logger for this store, falling back to default if not set."""
        if self._logger is not None:
            return self._logger
        return default_logger.with_context(component="vector_store")

    def set_logger(self, logger: ContextualLogger) -> None:
        """Set a contextual logger for this store."""
        self._logger = logger

    async def setup(self) -> None:
        """Create the backing collection if needed."""
        pass

    @abstractmethod
    async def add_vectors(self, items: List[AddVectorItem]) -> None:
        """Persist (chunk, vector) pairs. Re-adding an identical chunk is an upsert.

        Raises:
            VectorStoreError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_document_chunks(self, document_id: str, connector_id: str) -> None:
        """Delete every chunk of one document.

        Callers treat this as best effort and log failures.

        Raises:
            VectorStoreError: If the delete fails
        """
        pass

    async def close(self) -> None:
        """Release client resources."""
        pass
