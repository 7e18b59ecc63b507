"""Vector store boundary."""

from ._base import BaseVectorStore
from .qdrant import QdrantVectorStore, generate_point_id

__all__ = ["BaseVectorStore", "QdrantVectorStore", "generate_point_id"]
