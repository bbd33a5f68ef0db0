"""
Dependency injection container.

Lazily builds the process-wide services: one vector-store connection,
the retrieval service on top of it, collaborator adapters and the
request enricher.

Dependencies: rag_pipeline.configs, rag_pipeline.application, rag_pipeline.boundary
System role: DI container for service injection
"""

import logging
from functools import lru_cache

from qdrant_client import AsyncQdrantClient

from rag_pipeline.application.services.retrieval_service import RetrievalService
from rag_pipeline.boundary.collaborators.attachments import TextAttachmentProcessor
from rag_pipeline.boundary.collaborators.embeddings import build_embedding_service
from rag_pipeline.boundary.collaborators.generator import build_text_generator
from rag_pipeline.boundary.collaborators.query_enhancer import LLMQueryEnhancer
from rag_pipeline.boundary.collaborators.url_crawler import HttpUrlCrawler
from rag_pipeline.boundary.collaborators.web_search import SearxngWebSearch
from rag_pipeline.boundary.db.connection import get_async_engine, get_async_session_factory
from rag_pipeline.boundary.db.metadata_store import SqlMetadataStore
from rag_pipeline.boundary.vdb.connection_manager import ConnectionManager
from rag_pipeline.boundary.vdb.qdrant_store import QdrantVectorStore, ensure_collections
from rag_pipeline.boundary.vdb.search_cache import SearchCache
from rag_pipeline.configs import Settings, get_settings
from rag_pipeline.core.batch_executor import BatchExecutor
from rag_pipeline.core.enrichment import EnrichmentCollaborators, RequestEnricher
from rag_pipeline.core.retrieval.hybrid import HybridSearcher

logger = logging.getLogger(__name__)


class ServiceCache:
    """Container for cached service instances."""

    def __init__(self, settings: Settings | None = None):
        self._settings = settings
        self._connection = None
        self._vector_store = None
        self._embeddings = None
        self._generator = None
        self._metadata_store = None
        self._retrieval_service = None
        self._request_enricher = None

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def connection(self) -> ConnectionManager:
        """Get cached connection manager (collections bootstrapped on connect)."""
        if self._connection is None:
            dimension = self.settings.vector_store.embedding_dimension

            async def _bootstrap(client: AsyncQdrantClient) -> None:
                created = await ensure_collections(client, dimension)
                if created:
                    logger.info(f"{__name__}:_bootstrap - Created collections: {', '.join(created)}")

            self._connection = ConnectionManager.from_settings(self.settings.vector_store, on_connected=_bootstrap)
        return self._connection

    @property
    def vector_store(self) -> QdrantVectorStore:
        if self._vector_store is None:
            self._vector_store = QdrantVectorStore(
                self.connection,
                operation_timeout_s=self.settings.performance.search_timeout_s,
            )
        return self._vector_store

    @property
    def embeddings(self):
        if self._embeddings is None:
            self._embeddings = build_embedding_service(
                self.settings.collaborators,
                dimension=self.settings.vector_store.embedding_dimension,
                timeout_s=self.settings.performance.embedding_timeout_s,
            )
        return self._embeddings

    @property
    def generator(self):
        if self._generator is None:
            self._generator = build_text_generator(self.settings.collaborators)
        return self._generator

    @property
    def metadata_store(self) -> SqlMetadataStore:
        if self._metadata_store is None:
            engine = get_async_engine(self.settings.database)
            self._metadata_store = SqlMetadataStore(get_async_session_factory(engine))
        return self._metadata_store

    @property
    def retrieval_service(self) -> RetrievalService:
        if self._retrieval_service is None:
            retrieval = self.settings.retrieval
            self._retrieval_service = RetrievalService(
                store=self.vector_store,
                embeddings=self.embeddings,
                searcher=HybridSearcher(self.vector_store, retrieval),
                executor=BatchExecutor.from_settings(self.settings.performance),
                cache=SearchCache(retrieval.cache_max_size, retrieval.cache_ttl_s),
                settings=retrieval,
            )
        return self._retrieval_service

    @property
    def request_enricher(self) -> RequestEnricher:
        if self._request_enricher is None:
            collaborators_config = self.settings.collaborators
            self._request_enricher = RequestEnricher(
                collaborators=EnrichmentCollaborators(
                    retriever=self.retrieval_service,
                    metadata_store=self.metadata_store,
                    web_search=SearxngWebSearch.from_settings(collaborators_config, generator=self.generator),
                    crawler=HttpUrlCrawler(user_agent=collaborators_config.crawler_user_agent),
                    query_enhancer=LLMQueryEnhancer(self.generator),
                    generator=self.generator,
                ),
                attachment_processor=TextAttachmentProcessor(),
                settings=self.settings.enrichment,
            )
        return self._request_enricher

    async def aclose(self) -> None:
        """Close the vector-store connection and drop cached instances."""
        if self._connection is not None:
            await self._connection.close()
        self.clear()

    def clear(self) -> None:
        """Clear all cached instances."""
        self._connection = None
        self._vector_store = None
        self._embeddings = None
        self._generator = None
        self._metadata_store = None
        self._retrieval_service = None
        self._request_enricher = None


@lru_cache
def get_service_cache() -> ServiceCache:
    """Get service cache singleton."""
    return ServiceCache()


def get_retrieval_service() -> RetrievalService:
    return get_service_cache().retrieval_service


def get_request_enricher() -> RequestEnricher:
    return get_service_cache().request_enricher
