"""
Relational metadata ORM models.

Only the columns retrieval and enrichment read: uploaded document
metadata (chunk counts drive the full-text vs. vector decision) and the
user's saved texts.

Dependencies: sqlalchemy, rag_pipeline.boundary.db.base
System role: Read models for document and saved text metadata
"""

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rag_pipeline.boundary.db.base import Base, TimestampMixin


class DocumentModel(Base, TimestampMixin):
    """
    Uploaded document metadata.

    Attributes:
        id: Document id (matches ``document_id`` in vector payloads)
        user_id: Owner
        title: Display title
        filename: Original filename
        vector_count: Number of indexed chunks
        file_size: Size in bytes
        status: Ingestion status reported upstream
    """

    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(512), nullable=False, default="Untitled")
    filename: Mapped[str | None] = mapped_column(String(512), nullable=True)
    vector_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="completed")


class SavedTextModel(Base, TimestampMixin):
    """A saved (generated or authored) text; soft-deleted via ``is_active``."""

    __tablename__ = "user_documents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    document_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    word_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
