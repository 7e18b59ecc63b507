"""Qdrant vector store."""

import uuid
from typing import List, Optional

from qdrant_client import AsyncQdrantClient, models
from qdrant_client.http.exceptions import UnexpectedResponse

from docsync.core.config import settings
from docsync.core.logging import ContextualLogger
from docsync.platform.entities import AddVectorItem
from docsync.platform.sync.exceptions import VectorStoreError

from ._base import BaseVectorStore

POINT_NAMESPACE = uuid.UUID("6f1e9a3c-2b4d-5e8f-9a0b-1c2d3e4f5a6b")


def generate_point_id(connector_id: str, document_id: str, chunk_hash: str) -> str:
    """Generate a consistent Qdrant point ID for a chunk using UUID5."""
    return str(uuid.uuid5(POINT_NAMESPACE, f"{connector_id}:{document_id}:{chunk_hash}"))


class QdrantVectorStore(BaseVectorStore):
    """Stores chunks as Qdrant points with the chunk metadata as payload."""

    def __init__(
        self,
        client: Optional[AsyncQdrantClient] = None,
        collection_name: Optional[str] = None,
        vector_size: Optional[int] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the store.

        Args:
            client: Injected client; one is created from settings when omitted
            collection_name: Target collection
            vector_size: Dimension of stored vectors
            logger: Optional contextual logger
        """
        super().__init__(logger)
        self._client = client or AsyncQdrantClient(
            url=settings.QDRANT_URL, api_key=settings.QDRANT_API_KEY, timeout=30
        )
        self.collection_name = collection_name or settings.QDRANT_COLLECTION
        self.vector_size = vector_size or settings.VECTOR_SIZE

    async def setup(self) -> None:
        """Ensure the collection and its payload indexes exist."""
        if await self._client.collection_exists(self.collection_name):
            self.logger.info(f"Collection '{self.collection_name}' already exists.")
            return

        self.logger.info(f"Collection '{self.collection_name}' not found. Creating...")
        try:
            await self._client.create_collection(
                collection_name=self.collection_name,
                vectors_config=models.VectorParams(
                    size=self.vector_size, distance=models.Distance.COSINE
                ),
            )
        except UnexpectedResponse as e:
            # another worker may have created it concurrently
            if "already exists" not in str(e).lower():
                raise VectorStoreError(f"Failed to create collection: {e}") from e
            return

        for field in ("connector_id", "document_id"):
            await self._client.create_payload_index(
                collection_name=self.collection_name,
                field_name=field,
                field_schema=models.PayloadSchemaType.KEYWORD,
            )
        self.logger.info(f"Collection '{self.collection_name}' created.")

    @staticmethod
    def _to_point(item: AddVectorItem) -> models.PointStruct:
        chunk = item.chunk
        return models.PointStruct(
            id=generate_point_id(chunk.connector_id, chunk.document.unique_id, chunk.hash),
            vector=item.vector,
            payload={
                "text": chunk.text,
                "name": chunk.name,
                "source_url": chunk.source_url,
                "hash": chunk.hash,
                "connector_id": chunk.connector_id,
                "connector_type": chunk.connector_type.value,
                "document_id": chunk.document.unique_id,
            },
        )

    async def add_vectors(self, items: List[AddVectorItem]) -> None:
        """Upsert ``items`` as points."""
        if not items:
            return
        try:
            await self._client.upsert(
                collection_name=self.collection_name,
                points=[self._to_point(item) for item in items],
                wait=True,
            )
        except Exception as e:
            raise VectorStoreError(f"Failed to upsert {len(items)} points: {e}") from e

    async def delete_document_chunks(self, document_id: str, connector_id: str) -> None:
        """Delete points matching both the document and connector ids."""
        selector = models.FilterSelector(
            filter=models.Filter(
                must=[
                    models.FieldCondition(
                        key="document_id", match=models.MatchValue(value=document_id)
                    ),
                    models.FieldCondition(
                        key="connector_id", match=models.MatchValue(value=connector_id)
                    ),
                ]
            )
        )
        try:
            await self._client.delete(
                collection_name=self.collection_name, points_selector=selector, wait=True
            )
        except Exception as e:
            raise VectorStoreError(f"Failed to delete chunks of {document_id}: {e}") from e

    async def close(self) -> None:
        """Close the Qdrant client."""
        await self._client.close()
