"""Base text converter."""

from abc import ABC, abstractmethod


class BaseTextConverter(ABC):
    """Converts downloaded file content into plain text."""

    @abstractmethod
    async def convert(self, content: bytes) -> str:
        """Convert raw ``content`` to text.

        Raises:
            EntityProcessingError: If the content cannot be converted
        """
        pass
