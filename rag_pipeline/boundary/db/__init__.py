"""
Relational metadata boundary.

Provides ORM models, async engine/session factories and the
SqlMetadataStore used by enrichment.

Dependencies: sqlalchemy, asyncpg
System role: Relational metadata adapter
"""

from rag_pipeline.boundary.db.base import Base
from rag_pipeline.boundary.db.connection import get_async_engine, get_async_session_factory
from rag_pipeline.boundary.db.metadata_store import SqlMetadataStore
from rag_pipeline.boundary.db.models import DocumentModel, SavedTextModel

__all__ = [
    "Base",
    "DocumentModel",
    "SavedTextModel",
    "SqlMetadataStore",
    "get_async_engine",
    "get_async_session_factory",
]
