"""Base embedder interface for all embedder implementations."""

from abc import ABC, abstractmethod
from typing import List, Optional

from docsync.core.logging import ContextualLogger
from docsync.core.logging import logger as default_logger


class BaseEmbedder(ABC):
    """Turns text into a fixed-dimension vector.

    ``embed`` raises EmbeddingError when no vector can be produced; the
    caller decides whether that is fatal (the chunk pipeline skips the chunk).
    """

    def __init__(self, logger: Optional[ContextualLogger] = None):
        """Initialize the embedder."""
        self._logger = logger

    @property
    def logger(self) -> ContextualLogger:
        """Get the logger for this embedder, falling back to default if not set."""
        if self._logger is not None:
            return self._logger
        return default_logger.with_context(component="embedder")

    def set_logger(self, logger: ContextualLogger) -> None:
        """Set a contextual logger for this embedder."""
        self._logger = logger

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Embed a single text.

        Args:
            text: Non-empty text to embed

        Returns:
            The embedding vector

        Raises:
            EmbeddingError: On any failure after retries
        """
        pass

    async def close(self) -> None:
        """Release client resources."""
        pass
