"""Ollama embedder over the local HTTP API."""

from typing import List, Optional

import httpx

from docsync.core.config import settings
from docsync.core.logging import ContextualLogger
from docsync.platform.connectors.retry_helpers import (
    BackoffPolicy,
    call_with_backoff,
    should_retry_on_timeout,
)
from docsync.platform.sync.exceptions import EmbeddingError

from ._base import BaseEmbedder


class OllamaEmbedder(BaseEmbedder):
    """Embeds text with ``POST /api/embeddings`` on an Ollama server.

    Only timeouts are retried (capped exponential backoff); any other error is
    fatal for that text.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        policy: Optional[BackoffPolicy] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the embedder.

        Args:
            model: Ollama model name
            base_url: Server URL, defaults to ``settings.ollama_base_url``
            http_client: Injected client; one is created when omitted
            policy: Backoff for timeouts
            logger: Optional contextual logger
        """
        super().__init__(logger)
        self.model = model or settings.EMBEDDING_MODEL
        self.base_url = (base_url or settings.ollama_base_url).rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=settings.EMBEDDING_TIMEOUT)
        self._policy = policy or BackoffPolicy.for_embeddings()

    async def _request(self, text: str) -> List[float]:
        response = await self._client.post(
            f"{self.base_url}/api/embeddings",
            json={"model": self.model, "prompt": text},
        )
        response.raise_for_status()
        embedding = response.json().get("embedding")
        if not embedding:
            raise EmbeddingError(f"Ollama returned no embedding for model {self.model}")
        return embedding

    async def embed(self, text: str) -> List[float]:
        """Embed ``text``, retrying on timeouts."""
        try:
            return await call_with_backoff(
                self._request,
                text,
                policy=self._policy,
                retry_on=should_retry_on_timeout,
                logger=self.logger,
            )
        except EmbeddingError:
            raise
        except (httpx.HTTPError, ValueError) as e:
            raise EmbeddingError(f"Ollama embedding failed: {e}") from e

    async def close(self) -> None:
        """Close the HTTP client if this embedder created it."""
        if self._owns_client:
            await self._client.aclose()
