"""Chunk pipeline: the consumer side of a connector sync.

Drains a ChunkStream, normalizes each chunk, drops noise, embeds, persists to
the vector store and keeps the connector's counters current. A failure on one
chunk is logged and skipped; every remaining chunk is still attempted.
"""

import re
from typing import TYPE_CHECKING, Optional, Set

from pydantic import BaseModel

from docsync.core.config import settings
from docsync.core.logging import ContextualLogger
from docsync.core.logging import logger as default_logger
from docsync.platform.destinations import BaseVectorStore
from docsync.platform.embedders import BaseEmbedder
from docsync.platform.entities import AddVectorItem, Chunk

from .stream import ChunkStream

if TYPE_CHECKING:
    from docsync.platform.connectors import BaseConnector

_WHITESPACE = re.compile(r"\s+")


def clean_whitespace(text: str) -> str:
    """Remove byte-order marks, collapse whitespace runs to one space and trim.

    Idempotent: ``clean_whitespace(clean_whitespace(x)) == clean_whitespace(x)``.
    """
    return _WHITESPACE.sub(" ", text.replace("\ufeff", "")).strip()


class ChunkPipelineStats(BaseModel):
    """Outcome counters for one pipeline run."""

    received: int = 0
    persisted: int = 0
    dropped: int = 0
    failed: int = 0
    documents: int = 0


class ChunkPipeline:
    """Single consumer of a connector's chunk stream."""

    def __init__(
        self,
        connector: "BaseConnector",
        embedder: BaseEmbedder,
        vector_store: BaseVectorStore,
        min_chunk_size: Optional[int] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the pipeline.

        Args:
            connector: Connector whose state counters are updated
            embedder: Embedding boundary
            vector_store: Vector store boundary
            min_chunk_size: Chunks shorter than this after cleaning are dropped
            logger: Optional contextual logger
        """
        self.connector = connector
        self.embedder = embedder
        self.vector_store = vector_store
        if min_chunk_size is None:
            min_chunk_size = settings.MIN_CHUNK_SIZE
        self.min_chunk_size = min_chunk_size
        self.logger = logger or default_logger.with_context(
            component="chunk_pipeline", connector_id=connector.id
        )
        self._seen_documents: Set[str] = set()

    async def run(self, stream: ChunkStream) -> ChunkPipelineStats:
        """Consume ``stream`` until it is closed and drained, then set ``stream.done``."""
        stats = ChunkPipelineStats()
        self._seen_documents = set()

        async for result in stream:
            stats.received += 1
            if result.error is not None:
                self.logger.warning(f"Skipping item that failed in the connector: {result.error}")
                stats.failed += 1
                continue
            await self._process(result.chunk, stats)

        stream.done.set()
        self.logger.info(
            f"Chunk pipeline finished: {stats.persisted} persisted, {stats.dropped} dropped, "
            f"{stats.failed} failed of {stats.received} received"
        )
        return stats

    async def _process(self, chunk: Chunk, stats: ChunkPipelineStats) -> None:
        cleaned = clean_whitespace(chunk.text)
        if len(cleaned) < self.min_chunk_size:
            stats.dropped += 1
            return

        chunk = chunk.with_text(cleaned)
        try:
            vector = await self.embedder.embed(cleaned)
        except Exception as e:
            self.logger.error(f"Failed to embed chunk {chunk.hash[:12]} of '{chunk.name}': {e}")
            stats.failed += 1
            return

        try:
            await self.vector_store.add_vectors([AddVectorItem(chunk=chunk, vector=vector)])
        except Exception as e:
            self.logger.error(f"Failed to store chunk {chunk.hash[:12]} of '{chunk.name}': {e}")
            stats.failed += 1
            return

        stats.persisted += 1
        new_document = chunk.document.unique_id not in self._seen_documents
        if new_document:
            self._seen_documents.add(chunk.document.unique_id)
            stats.documents += 1

        await self._record(new_document)

    async def _record(self, new_document: bool) -> None:
        try:
            state = await self.connector.status()
            state.num_chunks += 1
            if new_document:
                state.num_documents += 1
            await self.connector.update_connector_state(state)
        except Exception as e:
            self.logger.error(f"Failed to update connector counters: {e}")
