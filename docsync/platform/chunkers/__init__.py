"""Chunkers turning document text into chunk texts."""

from ._base import BaseChunker
from .token_chunker import TokenChunker

__all__ = ["BaseChunker", "TokenChunker"]
