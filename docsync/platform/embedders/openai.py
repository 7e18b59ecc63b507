"""OpenAI embedder."""

from typing import List, Optional

import tiktoken
from openai import APIError, AsyncOpenAI

from docsync.core.config import settings
from docsync.core.logging import ContextualLogger
from docsync.platform.sync.exceptions import EmbeddingError, SyncFailureError

from ._base import BaseEmbedder


class OpenAIEmbedder(BaseEmbedder):
    """Embeds text with the OpenAI embeddings API.

    Texts longer than the model's token limit are truncated before the call.
    Transient errors are retried by the AsyncOpenAI client itself.
    """

    MAX_TOKENS_PER_TEXT = 8192

    def __init__(
        self,
        model: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
        encoding: Optional[tiktoken.Encoding] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the embedder.

        Args:
            model: Embedding model name
            client: Injected AsyncOpenAI client
            encoding: Injected tokenizer, defaults to ``cl100k_base``
            logger: Optional contextual logger
        """
        super().__init__(logger)
        if client is None and not settings.OPENAI_API_KEY:
            raise SyncFailureError("OPENAI_API_KEY required for OpenAI embeddings")

        self.model = model or settings.OPENAI_EMBEDDING_MODEL
        self._client = client or AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY,
            timeout=settings.EMBEDDING_TIMEOUT,
            max_retries=settings.EMBEDDING_RETRY_ATTEMPTS - 1,
        )
        self._tokenizer = encoding or tiktoken.get_encoding("cl100k_base")

    def _truncate(self, text: str) -> str:
        # content may contain special tokens such as <|endoftext|>
        tokens = self._tokenizer.encode(text, allowed_special="all")
        if len(tokens) <= self.MAX_TOKENS_PER_TEXT:
            return text
        self.logger.debug(
            f"Truncating text from {len(tokens)} to {self.MAX_TOKENS_PER_TEXT} tokens"
        )
        return self._tokenizer.decode(tokens[: self.MAX_TOKENS_PER_TEXT])

    async def embed(self, text: str) -> List[float]:
        """Embed ``text`` with one API request."""
        try:
            response = await self._client.embeddings.create(
                input=[self._truncate(text)],
                model=self.model,
                encoding_format="float",
            )
        except APIError as e:
            raise EmbeddingError(f"OpenAI embedding failed: {e}") from e

        if len(response.data) != 1:
            raise EmbeddingError(f"OpenAI returned {len(response.data)} embeddings for 1 text")
        return response.data[0].embedding

    async def close(self) -> None:
        """Close the OpenAI client."""
        await self._client.close()
