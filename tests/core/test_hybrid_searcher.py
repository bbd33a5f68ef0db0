"""
Test suite for HybridSearcher.

Tests variant text search, token fallback, dynamic thresholds, fusion
selection and quality-aware vector search over a mocked store.

System role: Verification of hybrid retrieval orchestration
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from rag_pipeline.boundary.vdb.vector_schemas import StoredPoint
from rag_pipeline.configs.retrieval import RetrievalSettings
from rag_pipeline.core.exceptions import ConnectivityError, VectorStoreError
from rag_pipeline.core.retrieval.hybrid import HybridSearcher, text_field_for
from rag_pipeline.models.search import HybridSearchOptions, ScoredChunk


def _point(point_id: str, text: str, document_id: str = "doc-1") -> StoredPoint:
    return StoredPoint(id=point_id, payload={"document_id": document_id, "chunk_text": text})


def _matched_variant(call) -> str:
    scroll_filter = call.args[1]
    return scroll_filter.must[-1].match.text


@pytest.fixture
def mock_store() -> MagicMock:
    """Provide mock QdrantVectorStore."""
    store = MagicMock()
    store.scroll = AsyncMock(return_value=([], None))
    store.search = AsyncMock(return_value=[])
    return store


@pytest.fixture
def searcher(mock_store: MagicMock, retrieval_settings: RetrievalSettings) -> HybridSearcher:
    """Provide HybridSearcher over the mocked store."""
    return HybridSearcher(mock_store, retrieval_settings)


class TestTextSearch:
    """Test suite for HybridSearcher.text_search."""

    @pytest.mark.asyncio
    async def test_should_search_every_variant_and_merge_by_id(
        self, searcher: HybridSearcher, mock_store: MagicMock
    ) -> None:
        """Test variant hits merge with first-seen precedence."""
        # Arrange
        async def _scroll(collection, scroll_filter, limit=100, offset=None):
            variant = scroll_filter.must[-1].match.text
            if variant == "klima schutz":
                return [_point("1", "klima schutz heute")], None
            return [_point("1", "dup"), _point("2", "klima-schutz morgen")], None

        mock_store.scroll.side_effect = _scroll

        # Act
        hits = await searcher.text_search("documents", "Klima Schutz")

        # Assert
        variants = sorted(_matched_variant(call) for call in mock_store.scroll.await_args_list)
        assert variants == ["klima schutz", "klima-schutz"]
        assert {hit.id for hit in hits} == {"1", "2"}
        assert all(hit.match_type == "exact" for hit in hits)
        assert next(h for h in hits if h.id == "1").payload["chunk_text"] == "klima schutz heute"

    @pytest.mark.asyncio
    async def test_should_fall_back_to_tokens_when_nothing_matched(
        self, searcher: HybridSearcher, mock_store: MagicMock
    ) -> None:
        """Test long tokens are searched alone and hits marked token_fallback."""
        # Arrange
        async def _scroll(collection, scroll_filter, limit=100, offset=None):
            if scroll_filter.must[-1].match.text == "energie":
                return [_point("9", "energie")], None
            return [], None

        mock_store.scroll.side_effect = _scroll

        # Act
        hits = await searcher.text_search("documents", "Wende der Energie")

        # Assert
        assert [hit.id for hit in hits] == ["9"]
        assert hits[0].match_type == "token_fallback"

    @pytest.mark.asyncio
    async def test_should_drop_failed_variant_but_propagate_connectivity(
        self, searcher: HybridSearcher, mock_store: MagicMock
    ) -> None:
        """Test store errors degrade one variant; connectivity errors propagate."""
        # Arrange
        mock_store.scroll.side_effect = VectorStoreError("index missing")

        # Act
        hits = await searcher.text_search("documents", "klima")

        # Assert
        assert hits == []

        mock_store.scroll.side_effect = ConnectivityError("down")
        with pytest.raises(ConnectivityError):
            await searcher.text_search("documents", "klima")

    @pytest.mark.asyncio
    async def test_should_scope_every_variant_by_base_filter(
        self, searcher: HybridSearcher, mock_store: MagicMock
    ) -> None:
        """Test the base filter is combined into each scroll."""
        from rag_pipeline.boundary.vdb.filters import match_value, with_conditions

        # Arrange
        base = with_conditions(None, match_value("user_id", "u1"))

        # Act
        await searcher.text_search("documents", "klima", base)

        # Assert
        scroll_filter = mock_store.scroll.await_args.args[1]
        assert scroll_filter.must[0].key == "user_id"

    def test_text_field_for_should_use_collection_catalog(self) -> None:
        """Test example collections index ``content`` instead of ``chunk_text``."""
        assert text_field_for("content_examples") == "content"
        assert text_field_for("documents") == "chunk_text"
        assert text_field_for("unknown") == "chunk_text"


class TestHybridSearch:
    """Test suite for HybridSearcher.hybrid_search."""

    @pytest.mark.asyncio
    async def test_should_raise_vector_threshold_without_text_hits(
        self, searcher: HybridSearcher, mock_store: MagicMock
    ) -> None:
        """Test vector-only evidence uses the stricter dynamic threshold."""
        # Arrange
        mock_store.search.return_value = [
            ScoredChunk(id="a", score=0.8, payload={"document_id": "doc-a"}),
        ]

        # Act
        response = await searcher.hybrid_search(
            "documents", [0.1, 0.2], "unmatched", options=HybridSearchOptions(threshold=0.3)
        )

        # Assert
        assert mock_store.search.await_args.kwargs["threshold"] == 0.55
        assert response.metadata.dynamic_threshold == 0.55
        assert response.metadata.fusion_method == "weighted"
        assert response.metadata.auto_switched_from_rrf
        assert [hit.id for hit in response.results] == ["a"]

    @pytest.mark.asyncio
    async def test_should_use_rrf_with_strong_text_evidence(
        self, searcher: HybridSearcher, mock_store: MagicMock
    ) -> None:
        """Test RRF is kept and overlapping hits rank first."""
        # Arrange
        mock_store.scroll.return_value = (
            [_point("a", "klima"), _point("b", "klima klima"), _point("c", "klima")],
            None,
        )
        mock_store.search.return_value = [
            ScoredChunk(id="b", score=0.9, payload={"document_id": "doc-b"}),
            ScoredChunk(id="z", score=0.6, payload={"document_id": "doc-z"}),
        ]

        # Act
        response = await searcher.hybrid_search("documents", [0.1], "klima")

        # Assert
        assert response.metadata.fusion_method == "rrf"
        assert response.metadata.text_results == 3
        assert response.metadata.vector_results == 2
        assert response.results[0].id == "b"
        assert response.results[0].search_method == "hybrid"
        assert mock_store.search.await_args.kwargs["threshold"] == 0.35

    @pytest.mark.asyncio
    async def test_search_with_quality_should_filter_and_rescore(
        self, searcher: HybridSearcher, mock_store: MagicMock
    ) -> None:
        """Test low-quality chunks are dropped and the rest rescored."""
        # Arrange
        mock_store.search.return_value = [
            ScoredChunk(id="low", score=0.9, payload={"quality_score": 0.1}),
            ScoredChunk(id="ok", score=0.8, payload={"quality_score": 1.0}),
        ]

        # Act
        hits = await searcher.search_with_quality("documents", [0.1], limit=5, threshold=0.3)

        # Assert
        assert [hit.id for hit in hits] == ["ok"]
        assert hits[0].score == pytest.approx(0.8 * 1.1)
