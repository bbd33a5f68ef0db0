"""
Retrieval service.

Per-domain search and indexing operations over the vector store:
document chunks (vector, hybrid, text), content examples, social media
examples, batched indexing, deletion, statistics, full-text assembly
and chunk context windows. Search responses are cached.

Dependencies: rag_pipeline.core.retrieval, rag_pipeline.boundary.vdb, qdrant_client
System role: Retrieval application service
"""

import logging
from collections.abc import Sequence
from typing import Any

from rag_pipeline.boundary.collaborators.protocols import EmbeddingService
from rag_pipeline.boundary.vdb.collections import COLLECTION_CATALOG, CONTENT_EXAMPLES, DOCUMENTS, SOCIAL_MEDIA_EXAMPLES
from rag_pipeline.boundary.vdb.filters import (
    build_content_example_filter,
    build_document_filter,
    build_social_media_filter,
    match_any,
    match_value,
    value_range,
    with_conditions,
)
from rag_pipeline.boundary.vdb.qdrant_store import QdrantVectorStore
from rag_pipeline.boundary.vdb.result_formatters import (
    format_content_example_hit,
    format_document_hit,
    format_social_media_hit,
)
from rag_pipeline.boundary.vdb.search_cache import SearchCache, build_cache_key
from rag_pipeline.boundary.vdb.vector_schemas import ChunkRecord
from rag_pipeline.configs.retrieval import RetrievalSettings
from rag_pipeline.core.batch_executor import BatchExecutor, BatchFailure
from rag_pipeline.core.exceptions import PartialFailure, ValidationError
from rag_pipeline.core.retrieval.grouping import group_hits_by_document
from rag_pipeline.core.retrieval.hybrid import HybridSearcher
from rag_pipeline.models.search import (
    ChunkContext,
    ContentExampleSearchOptions,
    ContextChunk,
    DocumentSearchOptions,
    FullTextDocument,
    FullTextResult,
    HybridSearchOptions,
    SearchResponse,
    SocialMediaSearchOptions,
    UserVectorStats,
)

logger = logging.getLogger(__name__)

FULL_TEXT_SEPARATOR = "\n\n"


def _payload_title(payload: dict[str, Any]) -> str:
    metadata = payload.get("metadata") if isinstance(payload.get("metadata"), dict) else {}
    return payload.get("title") or metadata.get("title") or "Untitled"


def _payload_filename(payload: dict[str, Any]) -> str:
    metadata = payload.get("metadata") if isinstance(payload.get("metadata"), dict) else {}
    return payload.get("filename") or metadata.get("filename") or ""


class RetrievalService:
    """
    Retrieval operations grouped per content domain.

    Coordinates the embedding collaborator, the hybrid searcher and the
    vector store. Stateless except for the shared result cache.
    """

    def __init__(
        self,
        store: QdrantVectorStore,
        embeddings: EmbeddingService,
        searcher: HybridSearcher | None = None,
        executor: BatchExecutor | None = None,
        cache: SearchCache | None = None,
        settings: RetrievalSettings | None = None,
    ) -> None:
        """
        Initialize retrieval service.

        Args:
            store: Vector store adapter
            embeddings: Query embedding collaborator
            searcher: Hybrid searcher (built over ``store`` when omitted)
            executor: Batch executor for indexing
            cache: Shared search result cache
            settings: Ranking configuration
        """
        self._settings = settings or RetrievalSettings()
        self._store = store
        self._embeddings = embeddings
        self._searcher = searcher or HybridSearcher(store, self._settings)
        self._executor = executor or BatchExecutor()
        self._cache = cache or SearchCache(self._settings.cache_max_size, self._settings.cache_ttl_s)

    @property
    def cache(self) -> SearchCache:
        return self._cache

    def _cached(self, key: str) -> SearchResponse | None:
        response = self._cache.get(key)
        if response is None:
            return None
        logger.debug(f"{__name__}:_cached - Cache hit {key[:12]}")
        return response.model_copy(update={"cached": True})

    async def _embed(self, query: str) -> list[float]:
        if not query or not query.strip():
            raise ValidationError("Search query is empty", field="query")
        return await self._embeddings.aembed_query(query.strip())

    def _document_cache_key(self, query: str, options: DocumentSearchOptions, search_type: str) -> str:
        filters = options.model_dump(exclude={"limit", "threshold", "user_id"}, exclude_none=True)
        return build_cache_key(query, options.user_id, filters, options.limit, options.threshold, search_type)

    # ------------------------------------------------------------------
    # Document chunks
    # ------------------------------------------------------------------

    async def search_documents(self, query: str, options: DocumentSearchOptions) -> SearchResponse:
        """
        Quality-aware vector search grouped by document.

        Args:
            query: Search query
            options: Filters, limit and threshold

        Returns:
            SearchResponse: DocumentResult entries sorted by similarity
        """
        key = self._document_cache_key(query, options, "vector")
        cached = self._cached(key)
        if cached is not None:
            return cached

        vector = await self._embed(query)
        query_filter = build_document_filter(options)
        try:
            hits = await self._searcher.search_with_quality(
                options.collection,
                vector,
                query_filter,
                limit=options.limit * 3,
                threshold=options.threshold,
            )
        except Exception as e:
            logger.error(f"{__name__}:search_documents - {type(e).__name__}: {e}")
            raise

        results = group_hits_by_document(
            hits,
            options.limit,
            self._settings.max_chunks_per_document,
            self._settings.max_excerpt_length,
        )
        response = SearchResponse(
            results=results,
            query=query,
            search_type="vector",
            message=f"Found {len(results)} documents",
            metadata={"chunk_hits": len(hits), "collection": options.collection},
        )
        self._cache.set(key, response)
        return response

    async def hybrid_search_documents(
        self,
        query: str,
        options: DocumentSearchOptions,
        hybrid: HybridSearchOptions | None = None,
    ) -> SearchResponse:
        """
        Hybrid (lexical + vector) search grouped by document.

        Args:
            query: Search query
            options: Filters, limit and threshold (override ``hybrid``'s)
            hybrid: Fusion weights and method

        Returns:
            SearchResponse: DocumentResult entries plus fusion metadata
        """
        hybrid = (hybrid or HybridSearchOptions(
            vector_weight=self._settings.vector_weight,
            text_weight=self._settings.text_weight,
            use_rrf=self._settings.use_rrf,
            rrf_k=self._settings.rrf_k,
        )).model_copy(update={"limit": options.limit, "threshold": options.threshold})

        key = build_cache_key(
            query,
            options.user_id,
            {
                **options.model_dump(exclude={"limit", "threshold", "user_id"}, exclude_none=True),
                **hybrid.model_dump(exclude={"limit", "threshold"}),
            },
            options.limit,
            options.threshold,
            "hybrid",
        )
        cached = self._cached(key)
        if cached is not None:
            return cached

        vector = await self._embed(query)
        try:
            fused = await self._searcher.hybrid_search(
                options.collection,
                vector,
                query,
                build_document_filter(options),
                hybrid,
            )
        except Exception as e:
            logger.error(f"{__name__}:hybrid_search_documents - {type(e).__name__}: {e}")
            raise

        results = group_hits_by_document(
            fused.results,
            options.limit,
            self._settings.max_chunks_per_document,
            self._settings.max_excerpt_length,
        )
        response = SearchResponse(
            results=results,
            query=query,
            search_type="hybrid",
            message=f"Found {len(results)} documents",
            metadata=fused.metadata.model_dump(),
        )
        self._cache.set(key, response)
        return response

    async def text_search_documents(self, query: str, options: DocumentSearchOptions) -> SearchResponse:
        """Lexical-only search grouped by document (no embedding call)."""
        if not query or not query.strip():
            raise ValidationError("Search query is empty", field="query")
        hits = await self._searcher.text_search(
            options.collection,
            query,
            build_document_filter(options),
            limit=options.limit * 3,
        )
        results = group_hits_by_document(
            hits,
            options.limit,
            self._settings.max_chunks_per_document,
            self._settings.max_excerpt_length,
        )
        return SearchResponse(
            results=results,
            query=query,
            search_type="text",
            message=f"Found {len(results)} documents",
            metadata={"match_types": sorted({hit.match_type for hit in hits})},
        )

    async def search_document_chunks(self, query: str, options: DocumentSearchOptions) -> SearchResponse:
        """Chunk-level vector hits (no grouping)."""
        vector = await self._embed(query)
        hits = await self._searcher.search_with_quality(
            options.collection,
            vector,
            build_document_filter(options),
            limit=options.limit,
            threshold=options.threshold,
        )
        results = [format_document_hit(hit, options.collection) for hit in hits]
        return SearchResponse(results=results, query=query, search_type="vector")

    # ------------------------------------------------------------------
    # Examples
    # ------------------------------------------------------------------

    async def search_content_examples(self, query: str, options: ContentExampleSearchOptions) -> SearchResponse:
        """Vector search over curated content examples."""
        key = build_cache_key(
            query,
            None,
            options.model_dump(exclude={"limit", "threshold"}, exclude_none=True),
            options.limit,
            options.threshold,
            "content_examples",
        )
        cached = self._cached(key)
        if cached is not None:
            return cached

        vector = await self._embed(query)
        hits = await self._store.search(
            CONTENT_EXAMPLES,
            vector,
            build_content_example_filter(options),
            limit=options.limit,
            threshold=options.threshold,
        )
        results = [format_content_example_hit(hit, CONTENT_EXAMPLES) for hit in hits]
        response = SearchResponse(
            results=results,
            query=query,
            search_type="vector",
            message=f"Found {len(results)} examples",
        )
        self._cache.set(key, response)
        return response

    async def search_social_media(self, query: str, options: SocialMediaSearchOptions) -> SearchResponse:
        """Vector search over social media examples."""
        key = build_cache_key(
            query,
            None,
            options.model_dump(exclude={"limit", "threshold"}, exclude_none=True),
            options.limit,
            options.threshold,
            "social_media",
        )
        cached = self._cached(key)
        if cached is not None:
            return cached

        vector = await self._embed(query)
        hits = await self._store.search(
            SOCIAL_MEDIA_EXAMPLES,
            vector,
            build_social_media_filter(options),
            limit=options.limit,
            threshold=options.threshold,
        )
        results = [format_social_media_hit(hit, SOCIAL_MEDIA_EXAMPLES) for hit in hits]
        response = SearchResponse(
            results=results,
            query=query,
            search_type="vector",
            message=f"Found {len(results)} examples",
        )
        self._cache.set(key, response)
        return response

    # ------------------------------------------------------------------
    # Indexing and deletion
    # ------------------------------------------------------------------

    async def index_document_chunks(
        self,
        records: Sequence[ChunkRecord],
        collection: str = DOCUMENTS,
        strict: bool = False,
    ) -> dict[str, Any]:
        """
        Upsert chunk records in bounded concurrent batches.

        Failed batches do not abort the run; their chunks are reported.

        Args:
            records: Embedded chunks
            collection: Target collection
            strict: Raise instead of returning when any chunk failed

        Returns:
            dict: indexed/failed counts and failed chunk references

        Raises:
            PartialFailure: strict is set and some chunks were not indexed
        """

        async def _upsert_batch(batch: list[ChunkRecord]) -> list[str | int]:
            await self._store.upsert(collection, batch)
            return [record.point_id() for record in batch]

        outcomes = await self._executor.run(list(records), _upsert_batch)
        failures = [outcome for outcome in outcomes if isinstance(outcome, BatchFailure)]
        indexed = len(outcomes) - len(failures)
        if failures:
            logger.warning(
                f"{__name__}:index_document_chunks - {len(failures)}/{len(outcomes)} chunks failed "
                f"for '{collection}'"
            )
        else:
            logger.info(f"{__name__}:index_document_chunks - Indexed {indexed} chunks into '{collection}'")
        self._cache.clear()
        result = {
            "indexed": indexed,
            "failed": len(failures),
            "failures": [
                {
                    "document_id": failure.item.document_id,
                    "chunk_index": failure.item.chunk_index,
                    "error": str(failure.error),
                    "error_kind": failure.error_kind.value,
                }
                for failure in failures
            ],
            "stats": self._executor.stats.as_dict(),
        }
        if strict and failures:
            raise PartialFailure(
                f"{len(failures)} of {len(outcomes)} chunks failed to index into '{collection}'",
                failed=len(failures),
                total=len(outcomes),
                details={"collection": collection, "failures": result["failures"]},
            )
        return result

    async def delete_document(
        self,
        document_id: str,
        user_id: str | None = None,
        collection: str = DOCUMENTS,
    ) -> None:
        """Delete every chunk of a document (scoped to the owner when given)."""
        delete_filter = build_document_filter(
            DocumentSearchOptions(user_id=user_id, document_ids=[document_id])
        )
        if delete_filter is None:
            raise ValidationError("document_id is required", field="document_id")
        await self._store.delete(collection, delete_filter)
        self._cache.clear()

    async def delete_user_documents(self, user_id: str, collection: str = DOCUMENTS) -> None:
        if not user_id:
            raise ValidationError("user_id is required", field="user_id")
        await self._store.delete(collection, with_conditions(None, match_value("user_id", user_id)))
        self._cache.clear()

    # ------------------------------------------------------------------
    # Statistics and assembly
    # ------------------------------------------------------------------

    async def get_stats(self, user_id: str) -> UserVectorStats:
        """
        Per-user indexing statistics.

        Counts unique documents and chunks in the documents collection and
        the user's points in every user-scoped collection.
        """
        user_filter = with_conditions(None, match_value("user_id", user_id))
        points = await self._store.scroll_all(DOCUMENTS, user_filter)
        unique_documents = {p.payload.get("document_id") for p in points if p.payload.get("document_id")}

        collection_points: dict[str, int] = {}
        for spec in COLLECTION_CATALOG:
            if spec.user_scoped:
                collection_points[spec.name] = await self._store.count(spec.name, user_filter)

        return UserVectorStats(
            user_id=user_id,
            unique_documents=len(unique_documents),
            total_vectors=len(points),
            collection_points=collection_points,
        )

    async def get_documents_full_text(
        self,
        user_id: str,
        document_ids: Sequence[str],
        collection: str = DOCUMENTS,
    ) -> FullTextResult:
        """
        Reassemble documents from their chunks, ordered by ``chunk_index``.

        Documents without chunks are reported in ``errors``.
        """
        if not document_ids:
            return FullTextResult()

        scroll_filter = with_conditions(
            None,
            match_value("user_id", user_id),
            match_any("document_id", list(document_ids)),
        )
        points = await self._store.scroll_all(collection, scroll_filter)

        by_document: dict[str, list[dict[str, Any]]] = {}
        for point in points:
            by_document.setdefault(str(point.payload.get("document_id")), []).append(point.payload)

        result = FullTextResult()
        for document_id in document_ids:
            chunks = by_document.get(document_id)
            if not chunks:
                result.errors.append({"document_id": document_id, "error": "No chunks found"})
                continue
            chunks.sort(key=lambda payload: payload.get("chunk_index") or 0)
            result.documents.append(
                FullTextDocument(
                    id=document_id,
                    title=_payload_title(chunks[0]),
                    filename=_payload_filename(chunks[0]),
                    full_text=FULL_TEXT_SEPARATOR.join(c.get("chunk_text") or "" for c in chunks),
                    chunk_count=len(chunks),
                )
            )

        logger.info(
            f"{__name__}:get_documents_full_text - {len(result.documents)} assembled, "
            f"{len(result.errors)} missing"
        )
        return result

    async def get_chunk_with_context(
        self,
        document_id: str,
        chunk_index: int,
        window: int = 2,
        user_id: str | None = None,
        collection: str = DOCUMENTS,
    ) -> ChunkContext | None:
        """
        Fetch a chunk plus up to ``window`` neighbours on each side.

        Returns:
            ChunkContext | None: None when the center chunk does not exist
        """
        if window < 0:
            raise ValidationError("window must be >= 0", field="window")

        base = build_document_filter(DocumentSearchOptions(user_id=user_id, document_ids=[document_id]))
        center_points, _ = await self._store.scroll(
            collection,
            with_conditions(base, match_value("chunk_index", chunk_index)),
            limit=1,
        )
        if not center_points:
            return None

        neighbour_filter = with_conditions(
            base,
            value_range("chunk_index", gte=max(0, chunk_index - window), lte=chunk_index + window),
        )
        neighbours = await self._store.scroll_all(collection, neighbour_filter)
        context = sorted(
            (
                ContextChunk(
                    text=p.payload.get("chunk_text") or "",
                    chunk_index=int(p.payload.get("chunk_index") or 0),
                    is_center=int(p.payload.get("chunk_index") or 0) == chunk_index,
                )
                for p in neighbours
            ),
            key=lambda chunk: chunk.chunk_index,
        )
        center = ContextChunk(
            text=center_points[0].payload.get("chunk_text") or "",
            chunk_index=chunk_index,
            is_center=True,
        )
        return ChunkContext(center=center, context=context)
