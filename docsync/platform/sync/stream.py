"""Bounded stream carrying chunk results from a connector to the pipeline."""

import asyncio
from typing import Optional

from docsync.core.config import settings
from docsync.core.exceptions import DocsyncException
from docsync.platform.entities import Chunk, ChunkSyncResult

_CLOSED = object()


class StreamClosedError(DocsyncException):
    """Raised when a producer emits onto a stream it already closed."""

    pass


class ChunkStream:
    """Single-producer, single-consumer queue of ``ChunkSyncResult``.

    The producer awaits ``put`` (backpressure once ``maxsize`` results are
    pending) and calls ``aclose`` when enumeration ends. The consumer iterates
    with ``async for`` until the stream is closed and drained, then sets
    ``done``. Completion of the consumer is therefore signalled separately from
    any error the producer raises.
    """

    def __init__(self, maxsize: Optional[int] = None):
        """Initialize the stream.

        Args:
            maxsize: Number of pending results before ``put`` blocks
        """
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize or settings.CHUNK_QUEUE_SIZE)
        self._closed = False
        self.done = asyncio.Event()

    @property
    def closed(self) -> bool:
        """Whether the producer has closed the stream."""
        return self._closed

    async def put(self, result: ChunkSyncResult) -> None:
        """Emit one result, waiting while the stream is full."""
        if self._closed:
            raise StreamClosedError("Cannot emit onto a closed chunk stream")
        await self._queue.put(result)

    async def put_chunk(self, chunk: Chunk) -> None:
        """Emit a chunk."""
        await self.put(ChunkSyncResult(chunk=chunk))

    async def put_error(self, error: str) -> None:
        """Emit an item-level error."""
        await self.put(ChunkSyncResult(error=error))

    async def aclose(self) -> None:
        """Close the stream. Never blocks, so it is safe in cleanup paths."""
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # the consumer stops once it drains a closed queue
            pass

    def __aiter__(self) -> "ChunkStream":
        return self

    async def __anext__(self) -> ChunkSyncResult:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item
