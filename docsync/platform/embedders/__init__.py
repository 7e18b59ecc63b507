"""Embedding boundary."""

from typing import Optional

from docsync.core.config import settings
from docsync.core.logging import ContextualLogger

from ._base import BaseEmbedder
from .ollama import OllamaEmbedder
from .openai import OpenAIEmbedder


def create_embedder(logger: Optional[ContextualLogger] = None) -> BaseEmbedder:
    """Build the embedder selected by ``EMBEDDING_PROVIDER``."""
    if settings.EMBEDDING_PROVIDER == "openai":
        return OpenAIEmbedder(logger=logger)
    return OllamaEmbedder(logger=logger)


__all__ = ["BaseEmbedder", "OllamaEmbedder", "OpenAIEmbedder", "create_embedder"]
