"""Entities produced by connectors and consumed by the chunk pipeline."""

import hashlib
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from docsync.core.shared_models import ConnectorType


class Document(BaseModel):
    """One source item (file, email, message).

    Superseded when the same ``unique_id`` resyncs: its old chunks are deleted
    before new ones are emitted.
    """

    unique_id: str = Field(..., description="ID of the item in the source.")
    name: str = Field(..., description="Display name of the item.")
    source_url: str = Field("", description="Link back to the item in the source.")
    connector_id: str = Field(..., description="Connector that produced the item.")
    connector_type: ConnectorType = Field(..., description="Connector variant.")
    created_at: Optional[datetime] = Field(None, description="Creation time in the source.")
    updated_at: Optional[datetime] = Field(None, description="Last modification in the source.")

    model_config = ConfigDict(frozen=True)


class Chunk(BaseModel):
    """A unit of embeddable text derived from a Document.

    Frozen: the pipeline derives a cleaned copy with ``with_text`` instead of
    mutating the original.
    """

    text: str = Field(..., description="Chunk content.")
    name: str = Field(..., description="Name of the owning document.")
    source_url: str = Field("", description="Link back to the owning document.")
    connector_id: str = Field(..., description="Connector that produced the chunk.")
    connector_type: ConnectorType = Field(..., description="Connector variant.")
    hash: str = Field("", description="sha256 of the text, stable identity for dedup.")
    document: Document = Field(..., description="The owning document.")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _compute_hash(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("hash") and isinstance(data.get("text"), str):
            return {**data, "hash": content_hash(data["text"])}
        return data

    def with_text(self, text: str) -> "Chunk":
        """Return a copy carrying ``text`` and its recomputed hash."""
        return self.model_copy(update={"text": text, "hash": content_hash(text)})

    @classmethod
    def for_document(cls, document: Document, text: str) -> "Chunk":
        """Build a chunk for ``document`` with metadata copied from it."""
        return cls(
            text=text,
            name=document.name,
            source_url=document.source_url,
            connector_id=document.connector_id,
            connector_type=document.connector_type,
            document=document,
        )


class ChunkSyncResult(BaseModel):
    """Item carried on a chunk stream: either a chunk or an item-level error."""

    chunk: Optional[Chunk] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "ChunkSyncResult":
        if (self.chunk is None) == (self.error is None):
            raise ValueError("ChunkSyncResult needs exactly one of chunk or error")
        return self


class AddVectorItem(BaseModel):
    """Unit persisted to the vector store."""

    chunk: Chunk
    vector: List[float]


def content_hash(text: str) -> str:
    """Return the sha256 hex digest of ``text``."""
    return hashlib.sha256(text.encode("utf-8", errors="ignore")).hexdigest()
