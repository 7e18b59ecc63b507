"""Token window chunker backed by tiktoken."""

import asyncio
from typing import List, Optional

import tiktoken

from docsync.core.config import settings

from ._base import BaseChunker


class TokenChunker(BaseChunker):
    """Fixed-size token windows with overlap.

    Uses the ``cl100k_base`` encoding unless one is injected. The encoding is
    loaded on first use.
    """

    ENCODING_NAME = "cl100k_base"

    def __init__(
        self,
        chunk_size: Optional[int] = None,
        overlap: Optional[int] = None,
        encoding: Optional[tiktoken.Encoding] = None,
    ):
        """Initialize the chunker.

        Args:
            chunk_size: Tokens per chunk
            overlap: Tokens shared by consecutive chunks
            encoding: Tokenizer to use instead of ``cl100k_base``
        """
        self.chunk_size = chunk_size or settings.CHUNK_SIZE_TOKENS
        self.overlap = settings.CHUNK_OVERLAP_TOKENS if overlap is None else overlap
        if self.overlap >= self.chunk_size:
            raise ValueError(
                f"overlap ({self.overlap}) must be smaller than chunk_size ({self.chunk_size})"
            )
        self._encoding = encoding

    @property
    def encoding(self) -> tiktoken.Encoding:
        """The tokenizer, loaded lazily."""
        if self._encoding is None:
            self._encoding = tiktoken.get_encoding(self.ENCODING_NAME)
        return self._encoding

    def split(self, text: str) -> List[str]:
        """Synchronously split ``text`` into token windows."""
        if not text or not text.strip():
            return []
        # content may contain special tokens such as <|endoftext|>
        tokens = self.encoding.encode(text, allowed_special="all")
        step = self.chunk_size - self.overlap
        chunks = []
        for start in range(0, len(tokens), step):
            window = tokens[start : start + self.chunk_size]
            chunks.append(self.encoding.decode(window))
            if start + self.chunk_size >= len(tokens):
                break
        return chunks

    async def chunk(self, text: str) -> List[str]:
        """Split ``text`` off the event loop."""
        return await asyncio.to_thread(self.split, text)
