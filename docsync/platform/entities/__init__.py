"""Documents, chunks and vector items."""

from ._base import AddVectorItem, Chunk, ChunkSyncResult, Document, content_hash

__all__ = ["AddVectorItem", "Chunk", "ChunkSyncResult", "Document", "content_hash"]
