"""
Vector database schemas.

Pydantic model for chunk points written to the vector store.

Dependencies: pydantic
System role: Type definitions for vector write operations
"""

import uuid
from typing import Any

from pydantic import BaseModel, Field


class ChunkRecord(BaseModel):
    """
    One embedded chunk ready for upsert.

    Re-indexing a chunk with the same id replaces the stored point.
    The id defaults to a UUID derived from (document_id, chunk_index) so
    repeated indexing of the same document is idempotent.
    """

    id: str | int | None = Field(default=None, description="Point id (UUID string or unsigned int)")
    document_id: str = Field(description="Parent document id")
    chunk_index: int = Field(ge=0, description="Ordinal position within the document")
    chunk_text: str = Field(description="Raw chunk text")
    vector: list[float] = Field(description="Embedding vector")
    user_id: str | None = Field(default=None, description="Owner (user collections only)")
    title: str | None = Field(default=None, description="Document title")
    filename: str | None = Field(default=None, description="Source filename")
    url: str | None = Field(default=None, description="Source URL (crawled collections)")
    quality_score: float | None = Field(default=None, ge=0.0, le=1.0)
    token_count: int | None = Field(default=None)
    created_at: str | None = Field(default=None, description="ISO timestamp")
    metadata: dict[str, Any] = Field(default_factory=dict)

    def point_id(self) -> str | int:
        if self.id is not None:
            return self.id
        return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{self.document_id}:{self.chunk_index}"))

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "document_id": self.document_id,
            "chunk_index": self.chunk_index,
            "chunk_text": self.chunk_text,
        }
        optional = {
            "user_id": self.user_id,
            "title": self.title,
            "filename": self.filename,
            "url": self.url,
            "quality_score": self.quality_score,
            "token_count": self.token_count,
            "created_at": self.created_at,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        if self.metadata:
            payload["metadata"] = self.metadata
        return payload


class StoredPoint(BaseModel):
    """Point returned by scroll (no score)."""

    id: str | int
    payload: dict[str, Any] = Field(default_factory=dict)
