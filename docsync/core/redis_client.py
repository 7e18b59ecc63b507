"""Redis client wrapper.

Lazily creates a single ``redis.asyncio`` client for the process. The client is
only needed when ``STATE_BACKEND=redis``.
"""

from typing import Optional

import redis.asyncio as redis

from docsync.core.config import settings
from docsync.core.logging import logger


class RedisClient:
    """Process-wide holder for an async Redis connection pool."""

    def __init__(self, url: Optional[str] = None):
        """Initialize the holder without connecting.

        Args:
            url: Redis URL, defaults to ``settings.REDIS_URL``
        """
        self._url = url or settings.REDIS_URL
        self._client: Optional[redis.Redis] = None

    @property
    def client(self) -> redis.Redis:
        """Return the shared client, creating it on first use."""
        if self._client is None:
            self._client = redis.from_url(self._url, decode_responses=True)
            logger.debug(f"Created Redis client for {self._url}")
        return self._client

    async def close(self) -> None:
        """Close the connection pool if it was opened."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


redis_client = RedisClient()
