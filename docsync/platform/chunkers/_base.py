"""Base chunker interface for all chunker implementations."""

from abc import ABC, abstractmethod
from typing import List


class BaseChunker(ABC):
    """Splits a document's text into chunk-sized pieces."""

    @abstractmethod
    async def chunk(self, text: str) -> List[str]:
        """Split ``text`` into chunk texts.

        Args:
            text: Full textual content of one document

        Returns:
            Chunk texts in document order (empty for empty input)
        """
        pass
