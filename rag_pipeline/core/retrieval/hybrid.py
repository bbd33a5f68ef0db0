"""
Hybrid search engine.

Runs lexical (multi-variant full-text) and vector search against one
collection and fuses the ranked lists.

Flow:
1. Text search over query variants (token fallback when nothing matched)
2. Dynamic vector threshold from text evidence
3. Vector search with an enlarged recall pool
4. RRF or weighted fusion (auto-switched on weak text evidence)
5. Quality gate

Dependencies: qdrant_client (filters), pydantic (models)
System role: Hybrid retrieval orchestration for one collection
"""

import asyncio
import logging
import math

from qdrant_client import models

from rag_pipeline.boundary.vdb.collections import get_collection_spec
from rag_pipeline.boundary.vdb.filters import match_text, with_conditions
from rag_pipeline.boundary.vdb.qdrant_store import QdrantVectorStore
from rag_pipeline.boundary.vdb.vector_schemas import StoredPoint
from rag_pipeline.configs.retrieval import RetrievalSettings
from rag_pipeline.core.exceptions import ConnectivityError
from rag_pipeline.core.retrieval.fusion import (
    apply_quality_filter,
    apply_quality_gate,
    apply_quality_rescoring,
    dynamic_threshold,
    reciprocal_rank_fusion,
    select_fusion,
    weighted_fusion,
)
from rag_pipeline.core.retrieval.text_scoring import (
    calculate_text_score,
    generate_query_variants,
    normalize_query,
    tokenize_query,
)
from rag_pipeline.models.search import (
    HybridSearchMetadata,
    HybridSearchOptions,
    HybridSearchResponse,
    MatchType,
    ScoredChunk,
    TextHit,
)

logger = logging.getLogger(__name__)

MIN_FALLBACK_TOKEN_LENGTH = 4


def text_field_for(collection: str) -> str:
    spec = get_collection_spec(collection)
    if spec is not None and spec.text_fields:
        return spec.text_fields[0]
    return "chunk_text"


class HybridSearcher:
    """
    Combines lexical and vector retrieval over a QdrantVectorStore.

    Stateless apart from its configuration; safe to share across requests.
    """

    def __init__(self, store: QdrantVectorStore, settings: RetrievalSettings | None = None) -> None:
        self._store = store
        self._settings = settings or RetrievalSettings()

    async def _scroll_variant(
        self,
        collection: str,
        field: str,
        variant: str,
        base_filter: models.Filter | None,
        limit: int,
    ) -> list[StoredPoint]:
        scroll_filter = with_conditions(base_filter, match_text(field, variant))
        try:
            points, _ = await self._store.scroll(collection, scroll_filter, limit=limit)
            return points
        except ConnectivityError:
            raise
        except Exception as e:
            logger.warning(
                f"{__name__}:_scroll_variant - Variant '{variant}' failed: {type(e).__name__}: {e}"
            )
            return []

    async def text_search(
        self,
        collection: str,
        query: str,
        base_filter: models.Filter | None = None,
        limit: int = 10,
    ) -> list[TextHit]:
        """
        Full-text search over query variants.

        Variant hits are merged by id (first seen wins). When nothing
        matched and the query has several long tokens, each token is
        searched on its own and hits are marked ``token_fallback``.

        Args:
            collection: Collection name
            query: Raw query text
            base_filter: Filter every variant search is restricted by
            limit: Maximum hits

        Returns:
            list[TextHit]: Hits sorted by heuristic text score
        """
        variants = generate_query_variants(query)
        if not variants:
            return []

        field = text_field_for(collection)
        per_variant = math.ceil(limit / len(variants)) + 5
        exact_variant = query.strip().lower()

        variant_points = await asyncio.gather(
            *(
                self._scroll_variant(collection, field, variant, base_filter, per_variant)
                for variant in variants
            )
        )

        merged: dict[str | int, tuple[StoredPoint, str]] = {}
        match_type: MatchType = "variant"
        for variant, points in zip(variants, variant_points):
            if points and variant == exact_variant:
                match_type = "exact"
            for point in points:
                merged.setdefault(point.id, (point, variant))

        if not merged:
            tokens = [
                token
                for token in tokenize_query(normalize_query(query) or query)
                if len(token) >= MIN_FALLBACK_TOKEN_LENGTH
            ]
            if len(tokens) > 1:
                logger.debug(f"{__name__}:text_search - Token fallback for {tokens}")
                per_token = math.ceil(limit / len(tokens)) + 3
                token_points = await asyncio.gather(
                    *(
                        self._scroll_variant(collection, field, token, base_filter, per_token)
                        for token in tokens
                    )
                )
                for points in token_points:
                    for point in points:
                        merged.setdefault(point.id, (point, "token"))
                match_type = "token_fallback"

        hits = [
            TextHit(
                id=point.id,
                score=calculate_text_score(query, point.payload.get(field), position),
                payload=point.payload,
                matched_variant=variant,
                match_type=match_type,
            )
            for position, (point, variant) in enumerate(merged.values())
        ]
        hits.sort(key=lambda hit: hit.score, reverse=True)

        logger.debug(f"{__name__}:text_search - {len(hits)} text hits in '{collection}' ({match_type})")
        return hits[:limit]

    async def hybrid_search(
        self,
        collection: str,
        query_vector: list[float],
        query_text: str,
        base_filter: models.Filter | None = None,
        options: HybridSearchOptions | None = None,
    ) -> HybridSearchResponse:
        """
        Fused lexical + vector search.

        Args:
            collection: Collection name
            query_vector: Query embedding
            query_text: Raw query text for lexical search
            base_filter: Filter applied to both searches
            options: Limit, threshold, weights and fusion method

        Returns:
            HybridSearchResponse: Fused hits plus fusion diagnostics
        """
        options = options or HybridSearchOptions()
        cfg = self._settings
        limit = options.limit
        recall = options.recall_limit or limit * 4

        text_hits = await self.text_search(collection, query_text, base_filter, max(limit, recall))

        threshold = options.threshold
        if cfg.enable_dynamic_thresholds:
            threshold = dynamic_threshold(
                options.threshold,
                bool(text_hits),
                cfg.min_vector_with_text_threshold,
                cfg.min_vector_only_threshold,
            )

        vector_hits = await self._store.search(
            collection,
            query_vector,
            base_filter,
            limit=max(limit, round(recall * 1.5)),
            threshold=threshold,
        )
        logger.info(
            f"{__name__}:hybrid_search - Vector: {len(vector_hits)} results, Text: {len(text_hits)} results"
        )

        plan = select_fusion(
            text_hits,
            options.use_rrf,
            options.vector_weight,
            options.text_weight,
            cfg.min_text_results_for_rrf,
            (cfg.fallback_vector_weight, cfg.fallback_text_weight),
            cfg.balanced_weight,
        )

        if plan.use_rrf:
            fused = reciprocal_rank_fusion(
                vector_hits,
                text_hits,
                limit,
                k=options.rrf_k,
                confidence_weighting=cfg.enable_confidence_weighting,
                confidence_boost=cfg.confidence_boost,
                confidence_penalty=cfg.confidence_penalty,
            )
        else:
            fused = weighted_fusion(vector_hits, text_hits, plan.vector_weight, plan.text_weight, limit)

        if cfg.enable_quality_gate:
            fused = apply_quality_gate(
                fused,
                bool(text_hits),
                cfg.min_final_score,
                cfg.min_vector_only_final_score,
            )

        metadata = HybridSearchMetadata(
            vector_results=len(vector_hits),
            text_results=len(text_hits),
            fusion_method="rrf" if plan.use_rrf else "weighted",
            vector_weight=plan.vector_weight,
            text_weight=plan.text_weight,
            dynamic_threshold=threshold,
            quality_filtered=cfg.enable_quality_gate,
            auto_switched_from_rrf=plan.auto_switched,
            has_real_text_matches=plan.has_real_text_matches,
            text_match_types=sorted({hit.match_type for hit in text_hits}),
        )
        return HybridSearchResponse(results=fused, metadata=metadata)

    async def search_with_quality(
        self,
        collection: str,
        query_vector: list[float],
        query_filter: models.Filter | None = None,
        limit: int = 10,
        threshold: float | None = None,
    ) -> list[ScoredChunk]:
        """Vector search with payload quality filtering and rescoring."""
        cfg = self._settings
        hits = await self._store.search(collection, query_vector, query_filter, limit, threshold)
        if cfg.quality_filter_enabled:
            hits = apply_quality_filter(hits, cfg.quality_min)
        return apply_quality_rescoring(hits, cfg.quality_boost)
