"""
Vector database boundary layer.

Provides the Qdrant-backed vector store and its connection lifecycle.
- ConnectionManager: Lazy, shared initialization with health checks
- QdrantVectorStore: Typed search/scroll/upsert/delete over named collections

Dependencies: qdrant_client
System role: Vector store adapter for RAG retrieval
"""

from rag_pipeline.boundary.vdb.collections import COLLECTION_CATALOG, CollectionSpec
from rag_pipeline.boundary.vdb.connection_manager import ConnectionManager, ConnectionState
from rag_pipeline.boundary.vdb.qdrant_store import QdrantVectorStore, ensure_collections
from rag_pipeline.boundary.vdb.search_cache import SearchCache
from rag_pipeline.boundary.vdb.vector_schemas import ChunkRecord, StoredPoint

__all__ = [
    "COLLECTION_CATALOG",
    "CollectionSpec",
    "ConnectionManager",
    "ConnectionState",
    "QdrantVectorStore",
    "ensure_collections",
    "SearchCache",
    "ChunkRecord",
    "StoredPoint",
]
