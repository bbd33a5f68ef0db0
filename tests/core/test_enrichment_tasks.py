"""
Test suite for enrichment tasks.

Tests URL crawling, web search, selected document retrieval (full text
vs. hybrid search), saved texts, automatic search with query variants
and fast drafts, each against mocked collaborators.

System role: Verification of per-task enrichment work units
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from rag_pipeline.configs.enrichment import EnrichmentSettings
from rag_pipeline.core.enrichment.tasks import (
    auto_search_documents,
    crawl_urls,
    fetch_saved_texts,
    generate_draft,
    retrieve_selected_documents,
    search_web,
)
from rag_pipeline.core.exceptions import CollaboratorError, ConnectivityError
from rag_pipeline.models.collaborators import (
    CrawlResult,
    DocumentMetadata,
    QueryEnhancement,
    SavedText,
    WebSearchResponse,
    WebSearchResult,
)
from rag_pipeline.models.enrichment import TaskKind
from rag_pipeline.models.search import DocumentResult, FullTextDocument, FullTextResult, SearchResponse


@pytest.fixture
def mock_retriever() -> MagicMock:
    """Provide mock DocumentRetriever."""
    retriever = MagicMock()
    retriever.get_documents_full_text = AsyncMock(return_value=FullTextResult())
    retriever.hybrid_search_documents = AsyncMock(return_value=SearchResponse())
    return retriever


@pytest.fixture
def mock_metadata_store() -> MagicMock:
    """Provide mock MetadataStore."""
    store = MagicMock()
    store.get_document_metadata = AsyncMock(return_value=None)
    store.get_saved_texts = AsyncMock(return_value=[])
    return store


class TestCrawlUrls:
    """Test suite for crawl_urls."""

    @pytest.mark.asyncio
    async def test_should_crawl_new_urls_and_drop_failures(self, enrichment_settings: EnrichmentSettings) -> None:
        """Test one failing URL does not fail the task."""
        # Arrange
        crawler = MagicMock()

        async def _crawl(url: str, timeout_s: float) -> CrawlResult:
            if "broken" in url:
                raise ConnectivityError("unreachable")
            return CrawlResult(
                url=url,
                title="",
                content="Inhalt der Seite",
                word_count=3,
                extracted_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            )

        crawler.crawl = AsyncMock(side_effect=_crawl)
        body = {"thema": "Lies https://www.example.org/a und https://broken.example/b"}

        # Act
        outcome = await crawl_urls(body, [], crawler, enrichment_settings)

        # Assert
        assert outcome.kind == TaskKind.URL
        assert len(outcome.documents) == 1
        document = outcome.documents[0]
        assert document.title == "Content from example.org"
        assert document.content_source == "url_crawl"
        assert document.extracted_at.startswith("2024-01-01")

    @pytest.mark.asyncio
    async def test_should_cap_urls_per_request(self) -> None:
        """Test only max_urls URLs are crawled."""
        # Arrange
        settings = EnrichmentSettings(_env_file=None, max_urls=2)
        crawler = MagicMock()
        crawler.crawl = AsyncMock(side_effect=lambda url, timeout_s: CrawlResult(url=url, content="x"))
        body = {"details": " ".join(f"https://site{i}.example" for i in range(5))}

        # Act
        outcome = await crawl_urls(body, [], crawler, settings)

        # Assert
        assert crawler.crawl.await_count == 2
        assert len(outcome.documents) == 2

    @pytest.mark.asyncio
    async def test_should_not_crawl_without_urls(self, enrichment_settings: EnrichmentSettings) -> None:
        """Test no crawler call when the body has no URLs."""
        crawler = MagicMock()
        crawler.crawl = AsyncMock()
        outcome = await crawl_urls({"thema": "ohne Links"}, [], crawler, enrichment_settings)
        assert outcome.documents == []
        crawler.crawl.assert_not_awaited()


class TestSearchWeb:
    """Test suite for search_web."""

    @pytest.mark.asyncio
    async def test_should_use_summary_as_knowledge_and_report_sources(
        self, enrichment_settings: EnrichmentSettings
    ) -> None:
        """Test summary becomes background knowledge and results become sources."""
        # Arrange
        web_search = MagicMock()
        web_search.search = AsyncMock(
            return_value=WebSearchResponse(
                query="q",
                results=[WebSearchResult(title="T", url="https://a.example", domain="a.example")],
                summary="Zusammenfassung",
            )
        )

        # Act
        outcome = await search_web("q", web_search, enrichment_settings)

        # Assert
        assert outcome.knowledge == ["HINTERGRUNDWISSEN (Websuche):\nZusammenfassung"]
        assert [s.url for s in outcome.web_search_sources] == ["https://a.example"]

    @pytest.mark.asyncio
    async def test_should_propagate_search_failure(self, enrichment_settings: EnrichmentSettings) -> None:
        """Test a failing search raises for the orchestrator to degrade."""
        web_search = MagicMock()
        web_search.search = AsyncMock(side_effect=CollaboratorError("searxng down"))
        with pytest.raises(CollaboratorError):
            await search_web("q", web_search, enrichment_settings)


class TestRetrieveSelectedDocuments:
    """Test suite for retrieve_selected_documents."""

    @pytest.mark.asyncio
    async def test_should_send_small_documents_whole_and_search_large_ones(
        self,
        mock_retriever: MagicMock,
        mock_metadata_store: MagicMock,
        enrichment_settings: EnrichmentSettings,
    ) -> None:
        """Test size classification drives the retrieval branch; full text comes first."""
        # Arrange
        metadata = {
            "small": DocumentMetadata(id="small", user_id="u1", title="Kurz", filename="kurz.pdf", vector_count=13),
            "large": DocumentMetadata(id="large", user_id="u1", title="Lang", vector_count=14),
        }
        mock_metadata_store.get_document_metadata.side_effect = lambda doc_id, user_id: metadata.get(doc_id)
        mock_retriever.get_documents_full_text.return_value = FullTextResult(
            documents=[FullTextDocument(id="small", title="payload", full_text="Volltext", chunk_count=13)]
        )
        mock_retriever.hybrid_search_documents.return_value = SearchResponse(
            results=[DocumentResult(document_id="large", title="Lang", relevant_content="Auszug", similarity_score=0.5)]
        )

        # Act
        outcome = await retrieve_selected_documents(
            ["large", "small", "foreign"], " Klima ", "u1", mock_retriever, mock_metadata_store, enrichment_settings
        )

        # Assert
        mock_retriever.get_documents_full_text.assert_awaited_once_with("u1", ["small"])
        query, options = mock_retriever.hybrid_search_documents.await_args.args
        assert query == "Klima"
        assert options.document_ids == ["large"]
        assert options.user_id == "u1"
        assert options.limit == enrichment_settings.large_document_search_limit
        assert outcome.knowledge[0].startswith("## Dokument: Kurz")
        assert outcome.knowledge[1].startswith("## Dokument: Lang")
        assert [r.retrieval_method for r in outcome.document_references] == ["full_text", "vector_search"]

    @pytest.mark.asyncio
    async def test_should_return_empty_when_no_document_is_accessible(
        self,
        mock_retriever: MagicMock,
        mock_metadata_store: MagicMock,
        enrichment_settings: EnrichmentSettings,
    ) -> None:
        """Test inaccessible or failing lookups yield no retrieval calls."""
        # Arrange
        mock_metadata_store.get_document_metadata.side_effect = [None, CollaboratorError("db down")]

        # Act
        outcome = await retrieve_selected_documents(
            ["a", "b"], "q", "u1", mock_retriever, mock_metadata_store, enrichment_settings
        )

        # Assert
        assert outcome.knowledge == []
        mock_retriever.get_documents_full_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_should_keep_successful_branch_when_other_fails(
        self,
        mock_retriever: MagicMock,
        mock_metadata_store: MagicMock,
        enrichment_settings: EnrichmentSettings,
    ) -> None:
        """Test a failed branch degrades while the other contributes."""
        # Arrange
        metadata = {
            "small": DocumentMetadata(id="small", user_id="u1", vector_count=2),
            "large": DocumentMetadata(id="large", user_id="u1", vector_count=50),
        }
        mock_metadata_store.get_document_metadata.side_effect = lambda doc_id, user_id: metadata[doc_id]
        mock_retriever.get_documents_full_text.return_value = FullTextResult(
            documents=[FullTextDocument(id="small", full_text="Text", chunk_count=2)]
        )
        mock_retriever.hybrid_search_documents.side_effect = ConnectivityError("down")

        # Act
        outcome = await retrieve_selected_documents(
            ["small", "large"], "q", "u1", mock_retriever, mock_metadata_store, enrichment_settings
        )

        # Assert
        assert len(outcome.knowledge) == 1

    @pytest.mark.asyncio
    async def test_should_raise_when_every_branch_fails(
        self,
        mock_retriever: MagicMock,
        mock_metadata_store: MagicMock,
        enrichment_settings: EnrichmentSettings,
    ) -> None:
        """Test the task fails only if nothing could be retrieved."""
        # Arrange
        mock_metadata_store.get_document_metadata.return_value = DocumentMetadata(
            id="small", user_id="u1", vector_count=1
        )
        mock_retriever.get_documents_full_text.side_effect = ConnectivityError("down")

        # Act & Assert
        with pytest.raises(ConnectivityError):
            await retrieve_selected_documents(
                ["small"], "q", "u1", mock_retriever, mock_metadata_store, enrichment_settings
            )


class TestFetchSavedTexts:
    """Test suite for fetch_saved_texts."""

    @pytest.mark.asyncio
    async def test_should_format_each_text(self, mock_metadata_store: MagicMock) -> None:
        """Test one fragment and reference per saved text."""
        # Arrange
        mock_metadata_store.get_saved_texts.return_value = [
            SavedText(id="t1", title="Rede", content="Inhalt", document_type="press"),
        ]

        # Act
        outcome = await fetch_saved_texts(["t1", "t2"], "u1", mock_metadata_store)

        # Assert
        mock_metadata_store.get_saved_texts.assert_awaited_once_with(["t1", "t2"], "u1")
        assert outcome.knowledge[0].startswith("## Text: Rede")
        assert outcome.text_references[0].type == "Pressemitteilung"


class TestAutoSearchDocuments:
    """Test suite for auto_search_documents."""

    @pytest.mark.asyncio
    async def test_should_search_enhanced_variants_and_keep_best_per_document(
        self, mock_retriever: MagicMock, enrichment_settings: EnrichmentSettings
    ) -> None:
        """Test enhanced variants replace the query and hits merge by max score."""
        # Arrange
        enhancer = MagicMock()
        enhancer.enhance = AsyncMock(
            return_value=QueryEnhancement(
                original_query="solar",
                enhanced_queries=["solar", "photovoltaik"],
                confidence=0.8,
            )
        )
        responses = {
            "solar": SearchResponse(
                results=[
                    DocumentResult(document_id="d1", title="A", similarity_score=0.62),
                    DocumentResult(document_id="d2", title="B", similarity_score=0.9),
                ]
            ),
            "photovoltaik": SearchResponse(
                results=[DocumentResult(document_id="d1", title="A", similarity_score=0.8)]
            ),
        }
        mock_retriever.hybrid_search_documents.side_effect = lambda query, options, hybrid: responses[query]

        # Act
        outcome = await auto_search_documents("solar", "u1", mock_retriever, enhancer, enrichment_settings)

        # Assert
        assert [d.id for d in outcome.auto_selected_documents] == ["d2", "d1"]
        assert outcome.auto_selected_documents[1].matched_query == "photovoltaik"
        assert outcome.enhancement["enhancedQueries"] == ["solar", "photovoltaik"]
        _, options, hybrid = mock_retriever.hybrid_search_documents.await_args.args
        assert options.threshold == enrichment_settings.auto_search_threshold
        assert options.limit == enrichment_settings.auto_search_limit * 2
        assert (hybrid.vector_weight, hybrid.text_weight) == (0.7, 0.3)

    @pytest.mark.asyncio
    async def test_should_skip_enhancement_in_privacy_mode(
        self, mock_retriever: MagicMock, enrichment_settings: EnrichmentSettings
    ) -> None:
        """Test privacy mode searches the original query only."""
        # Arrange
        enhancer = MagicMock()
        enhancer.enhance = AsyncMock()

        # Act
        outcome = await auto_search_documents(
            "solar", "u1", mock_retriever, enhancer, enrichment_settings, use_privacy_mode=True
        )

        # Assert
        enhancer.enhance.assert_not_awaited()
        assert mock_retriever.hybrid_search_documents.await_args.args[0] == "solar"
        assert outcome.knowledge == []
        assert outcome.enhancement is None

    @pytest.mark.asyncio
    async def test_should_fall_back_to_original_when_enhancer_fails(
        self, mock_retriever: MagicMock, enrichment_settings: EnrichmentSettings
    ) -> None:
        """Test enhancer errors degrade to the unenhanced query."""
        # Arrange
        enhancer = MagicMock()
        enhancer.enhance = AsyncMock(side_effect=CollaboratorError("bad json"))
        mock_retriever.hybrid_search_documents.return_value = SearchResponse(
            results=[DocumentResult(document_id="d1", similarity_score=0.7)]
        )

        # Act
        outcome = await auto_search_documents("solar", "u1", mock_retriever, enhancer, enrichment_settings)

        # Assert
        assert mock_retriever.hybrid_search_documents.await_count == 1
        assert [d.id for d in outcome.auto_selected_documents] == ["d1"]


class TestGenerateDraft:
    """Test suite for generate_draft."""

    @pytest.mark.asyncio
    async def test_should_return_draft_for_theme(self, enrichment_settings: EnrichmentSettings) -> None:
        """Test the draft is generated with configured limits."""
        # Arrange
        generator = MagicMock()
        generator.agenerate = AsyncMock(return_value="  Ein ausreichend langer Vorentwurf zum Thema.  ")

        # Act
        outcome = await generate_draft({"thema": "Radwege"}, generator, enrichment_settings)

        # Assert
        assert outcome.draft == "Ein ausreichend langer Vorentwurf zum Thema."
        kwargs = generator.agenerate.await_args.kwargs
        assert kwargs["max_tokens"] == enrichment_settings.draft_max_tokens
        assert "Thema: Radwege" in generator.agenerate.await_args.args[0]

    @pytest.mark.asyncio
    async def test_should_discard_short_draft_and_skip_without_theme(
        self, enrichment_settings: EnrichmentSettings
    ) -> None:
        """Test short results and missing themes produce no draft."""
        # Arrange
        generator = MagicMock()
        generator.agenerate = AsyncMock(return_value="kurz")

        # Act
        short = await generate_draft({"thema": "Radwege"}, generator, enrichment_settings)
        skipped = await generate_draft({}, generator, enrichment_settings)

        # Assert
        assert short.draft is None
        assert skipped.draft is None
        assert generator.agenerate.await_count == 1
