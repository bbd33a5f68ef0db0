"""
Relational metadata store.

Read-only lookups retrieval and enrichment need: per-document metadata
(owner check + chunk count) and saved texts by id.

Dependencies: sqlalchemy
System role: MetadataStore collaborator implementation
"""

import logging
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rag_pipeline.boundary.db.models import DocumentModel, SavedTextModel
from rag_pipeline.core.exceptions import CollaboratorError
from rag_pipeline.models.collaborators import DocumentMetadata, SavedText

logger = logging.getLogger(__name__)


def _to_metadata(row: DocumentModel) -> DocumentMetadata:
    return DocumentMetadata(
        id=row.id,
        user_id=row.user_id,
        title=row.title or "Untitled",
        filename=row.filename or "",
        vector_count=row.vector_count or 0,
        file_size=row.file_size,
    )


def _to_saved_text(row: SavedTextModel) -> SavedText:
    return SavedText(
        id=row.id,
        title=row.title or "",
        content=row.content or "",
        document_type=row.document_type,
        word_count=row.word_count,
        created_at=row.created_at,
    )


class SqlMetadataStore:
    """
    SQLAlchemy async implementation of the MetadataStore contract.

    Each call opens its own short-lived session from the factory.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_document_metadata(self, document_id: str, user_id: str) -> DocumentMetadata | None:
        """
        Fetch metadata for a document owned by ``user_id``.

        Args:
            document_id: Document id
            user_id: Requesting user

        Returns:
            DocumentMetadata | None: None when missing or owned by someone else
        """
        stmt = select(DocumentModel).where(
            DocumentModel.id == document_id,
            DocumentModel.user_id == user_id,
        )
        try:
            async with self._session_factory() as session:
                row = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"{__name__}:get_document_metadata - {type(e).__name__}: {e}")
            raise CollaboratorError(
                "Document metadata lookup failed",
                collaborator="metadata_store",
                details={"document_id": document_id},
            ) from e

        if row is None:
            logger.debug(f"{__name__}:get_document_metadata - No access to {document_id}")
            return None
        return _to_metadata(row)

    async def get_documents_metadata(
        self,
        document_ids: Sequence[str],
        user_id: str,
    ) -> list[DocumentMetadata]:
        """Bulk variant; inaccessible ids are silently absent from the result."""
        if not document_ids:
            return []
        stmt = select(DocumentModel).where(
            DocumentModel.id.in_(list(document_ids)),
            DocumentModel.user_id == user_id,
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"{__name__}:get_documents_metadata - {type(e).__name__}: {e}")
            raise CollaboratorError("Document metadata lookup failed", collaborator="metadata_store") from e

        by_id = {row.id: row for row in rows}
        return [_to_metadata(by_id[doc_id]) for doc_id in document_ids if doc_id in by_id]

    async def get_saved_texts(
        self,
        text_ids: Sequence[str],
        user_id: str | None = None,
    ) -> list[SavedText]:
        """
        Fetch active saved texts in the requested order.

        Args:
            text_ids: Saved text ids
            user_id: Optional owner restriction

        Returns:
            list[SavedText]: Active texts found
        """
        if not text_ids:
            return []
        stmt = select(SavedTextModel).where(
            SavedTextModel.id.in_(list(text_ids)),
            SavedTextModel.is_active.is_(True),
        )
        if user_id:
            stmt = stmt.where(SavedTextModel.user_id == user_id)
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"{__name__}:get_saved_texts - {type(e).__name__}: {e}")
            raise CollaboratorError("Saved text lookup failed", collaborator="metadata_store") from e

        by_id = {row.id: row for row in rows}
        return [_to_saved_text(by_id[text_id]) for text_id in text_ids if text_id in by_id]
