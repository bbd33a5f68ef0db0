"""
Test suite for RequestEnricher.

Tests task planning from request flags, concurrent execution under the
request timeout, graceful degradation of failing tasks, aggregation
order (draft first) and attachment handling.

System role: Verification of per-request enrichment coordination
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from rag_pipeline.configs.enrichment import EnrichmentSettings
from rag_pipeline.core.enrichment import EnrichmentCollaborators, RequestEnricher
from rag_pipeline.core.exceptions import AttachmentProcessingError, CollaboratorError, ErrorKind
from rag_pipeline.models.collaborators import CrawlResult, SavedText, WebSearchResponse, WebSearchResult
from rag_pipeline.models.enrichment import EnrichmentOptions, EnrichmentPhase, TaskKind
from rag_pipeline.models.search import DocumentResult, SearchResponse

DRAFT_TEXT = "Ein schneller Vorentwurf mit genug Inhalt."


@pytest.fixture
def collaborators() -> EnrichmentCollaborators:
    """Provide collaborators with well-behaved async mocks."""
    web_search = MagicMock()
    web_search.search = AsyncMock(
        return_value=WebSearchResponse(
            query="q",
            results=[WebSearchResult(title="Quelle", url="https://news.example/1", domain="news.example")],
            summary="Aktuelle Lage",
        )
    )
    crawler = MagicMock()
    crawler.crawl = AsyncMock(
        side_effect=lambda url, timeout_s: CrawlResult(url=url, title="Seite", content="Seiteninhalt", word_count=1)
    )
    metadata_store = MagicMock()
    metadata_store.get_document_metadata = AsyncMock(return_value=None)
    metadata_store.get_saved_texts = AsyncMock(
        return_value=[SavedText(id="t1", title="Gespeichert", content="Text")]
    )
    retriever = MagicMock()
    retriever.get_documents_full_text = AsyncMock()
    retriever.hybrid_search_documents = AsyncMock(
        return_value=SearchResponse(
            results=[DocumentResult(document_id="d1", title="Auto", relevant_content="Auszug", similarity_score=0.8)]
        )
    )
    generator = MagicMock()
    generator.agenerate = AsyncMock(return_value=DRAFT_TEXT)
    return EnrichmentCollaborators(
        retriever=retriever,
        metadata_store=metadata_store,
        web_search=web_search,
        crawler=crawler,
        query_enhancer=None,
        generator=generator,
    )


@pytest.fixture
def enricher(collaborators: EnrichmentCollaborators, enrichment_settings: EnrichmentSettings) -> RequestEnricher:
    """Provide RequestEnricher without attachment processor."""
    return RequestEnricher(collaborators=collaborators, settings=enrichment_settings)


class TestEnrichPlanning:
    """Test suite for task selection from request flags."""

    @pytest.mark.asyncio
    async def test_should_seed_state_without_any_task(self, enricher: RequestEnricher) -> None:
        """Test knowledge_content and instructions seed the state."""
        # Arrange
        options = EnrichmentOptions(enable_urls=False, knowledge_content="Vorwissen", instructions="Kurz halten")

        # Act
        state = await enricher.enrich({"thema": "x"}, options)

        # Assert
        assert state.knowledge == ["Vorwissen"]
        assert state.instructions == "Kurz halten"
        assert state.phase == EnrichmentPhase.AGGREGATED
        assert state.enrichment_metadata.contributing_sources == []

    @pytest.mark.asyncio
    async def test_privacy_mode_should_disable_urls_documents_and_draft(
        self, enricher: RequestEnricher, collaborators: EnrichmentCollaborators
    ) -> None:
        """Test privacy mode skips crawling, selected document retrieval and drafts."""
        # Arrange
        options = EnrichmentOptions(
            user_id="u1",
            use_privacy_mode=True,
            selected_document_ids=["d1"],
            search_query="klima",
            enable_fast_draft=True,
        )

        # Act
        state = await enricher.enrich({"thema": "https://example.org"}, options)

        # Assert
        collaborators.crawler.crawl.assert_not_awaited()
        collaborators.metadata_store.get_document_metadata.assert_not_awaited()
        collaborators.generator.agenerate.assert_not_awaited()
        assert state.enrichment_metadata.use_privacy_mode

    @pytest.mark.asyncio
    async def test_manual_selection_should_suppress_automatic_search(
        self, enricher: RequestEnricher, collaborators: EnrichmentCollaborators
    ) -> None:
        """Test selected texts take priority over automatic search."""
        # Arrange
        options = EnrichmentOptions(
            user_id="u1",
            enable_urls=False,
            selected_text_ids=["t1"],
            use_automatic_search=True,
            search_query="klima",
        )

        # Act
        state = await enricher.enrich({}, options)

        # Assert
        collaborators.retriever.hybrid_search_documents.assert_not_awaited()
        assert state.enrichment_metadata.contributing_sources == [TaskKind.TEXTS]
        assert state.enrichment_metadata.texts_references[0].title == "Gespeichert"

    @pytest.mark.asyncio
    async def test_missing_collaborator_should_skip_task(self, enrichment_settings: EnrichmentSettings) -> None:
        """Test a task whose collaborator is not configured is not planned."""
        # Arrange
        enricher = RequestEnricher(collaborators=EnrichmentCollaborators(), settings=enrichment_settings)
        options = EnrichmentOptions(enable_web_search=True, web_search_query="q")

        # Act
        state = await enricher.enrich({"thema": "https://example.org"}, options)

        # Assert
        assert state.enrichment_metadata.failed_sources == {}
        assert state.documents == []


class TestEnrichExecution:
    """Test suite for concurrent execution and aggregation."""

    @pytest.mark.asyncio
    async def test_failing_web_search_should_not_fail_request(
        self, enricher: RequestEnricher, collaborators: EnrichmentCollaborators
    ) -> None:
        """Test a throwing task degrades while other tasks still contribute."""
        # Arrange
        collaborators.web_search.search.side_effect = CollaboratorError("searxng down")
        options = EnrichmentOptions(
            user_id="u1",
            enable_web_search=True,
            web_search_query="klima",
            selected_text_ids=["t1"],
        )

        # Act
        state = await enricher.enrich({"thema": "Siehe https://example.org/info"}, options)

        # Assert
        metadata = state.enrichment_metadata
        assert metadata.failed_sources == {"websearch": ErrorKind.UNKNOWN}
        assert set(metadata.contributing_sources) == {TaskKind.URL, TaskKind.TEXTS}
        assert metadata.web_search_sources is None
        assert [d.url for d in state.documents] == ["https://example.org/info"]
        assert any(k.startswith("## Text: Gespeichert") for k in state.knowledge)

    @pytest.mark.asyncio
    async def test_draft_should_be_prepended_to_knowledge(
        self, enricher: RequestEnricher, collaborators: EnrichmentCollaborators
    ) -> None:
        """Test the fast draft is placed ahead of all other knowledge."""
        # Arrange
        options = EnrichmentOptions(
            enable_urls=False,
            enable_web_search=True,
            web_search_query="klima",
            enable_fast_draft=True,
            knowledge_content="Vorwissen",
        )

        # Act
        state = await enricher.enrich({"thema": "Klimaschutz"}, options)

        # Assert
        assert state.knowledge[0].startswith("<vorarbeit>")
        assert DRAFT_TEXT in state.knowledge[0]
        assert "Vorwissen" in state.knowledge
        assert "HINTERGRUNDWISSEN (Websuche):\nAktuelle Lage" in state.knowledge
        metadata = state.enrichment_metadata
        assert metadata.draft_used
        assert metadata.draft_length == len(DRAFT_TEXT)
        assert [s.url for s in metadata.web_search_sources] == ["https://news.example/1"]
        assert len(state.tool_instructions) == 2

    @pytest.mark.asyncio
    async def test_slow_task_should_be_cancelled_at_request_timeout(
        self, enricher: RequestEnricher, collaborators: EnrichmentCollaborators
    ) -> None:
        """Test pending tasks are cancelled and reported as timeouts."""
        # Arrange
        cancelled = asyncio.Event()

        async def _hang(query: str) -> WebSearchResponse:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return WebSearchResponse(query=query)

        collaborators.web_search.search.side_effect = _hang
        options = EnrichmentOptions(
            user_id="u1",
            enable_web_search=True,
            web_search_query="klima",
            selected_text_ids=["t1"],
            enable_urls=False,
            request_timeout_s=0.05,
        )

        # Act
        state = await enricher.enrich({}, options)

        # Assert
        assert cancelled.is_set()
        assert state.enrichment_metadata.failed_sources == {"websearch": ErrorKind.TIMEOUT}
        assert state.enrichment_metadata.contributing_sources == [TaskKind.TEXTS]

    @pytest.mark.asyncio
    async def test_automatic_search_should_record_selected_documents(
        self, enricher: RequestEnricher
    ) -> None:
        """Test automatic search contributes excerpts and metadata."""
        # Arrange
        options = EnrichmentOptions(
            user_id="u1",
            enable_urls=False,
            use_automatic_search=True,
            search_query="klima",
        )

        # Act
        state = await enricher.enrich({}, options)

        # Assert
        metadata = state.enrichment_metadata
        assert metadata.auto_search_used
        assert [d.id for d in metadata.auto_selected_documents] == ["d1"]
        assert state.knowledge[0].startswith("## Dokument (Auto-ausgewählt): Auto")


class TestEnrichAttachments:
    """Test suite for attachment handling."""

    @pytest.mark.asyncio
    async def test_document_knowledge_should_bypass_attachment_processing(
        self, collaborators: EnrichmentCollaborators, enrichment_settings: EnrichmentSettings
    ) -> None:
        """Test pre-processed knowledge is used and attachments are not processed."""
        # Arrange
        processor = MagicMock()
        processor.process = AsyncMock()
        enricher = RequestEnricher(collaborators, processor, enrichment_settings)
        body = {"documentKnowledge": "Vorverarbeitet", "attachments": [{"type": "text/plain"}]}

        # Act
        state = await enricher.enrich(body, EnrichmentOptions(enable_urls=False))

        # Assert
        processor.process.assert_not_awaited()
        assert state.knowledge == ["Vorverarbeitet"]
        assert state.enrichment_metadata.documents_preprocessed

    @pytest.mark.asyncio
    async def test_attachment_documents_should_be_added_and_urls_not_recrawled(
        self, collaborators: EnrichmentCollaborators, enrichment_settings: EnrichmentSettings
    ) -> None:
        """Test processed attachments become documents; their URLs are skipped by the crawler."""
        # Arrange
        processor = MagicMock()
        processor.process = AsyncMock(
            return_value={
                "documents": [
                    {"text": "Bereits geladen", "url": "https://example.org/a", "content_source": "url_crawl"}
                ],
                "knowledge": [],
            }
        )
        enricher = RequestEnricher(collaborators, processor, enrichment_settings)
        body = {"thema": "https://example.org/a", "attachments": [{"type": "crawled_url"}]}

        # Act
        state = await enricher.enrich(body, EnrichmentOptions())

        # Assert
        collaborators.crawler.crawl.assert_not_awaited()
        assert state.enrichment_metadata.total_documents == 1
        assert state.enrichment_metadata.enable_doc_qna

    @pytest.mark.asyncio
    async def test_attachment_failure_should_abort_request(
        self, collaborators: EnrichmentCollaborators, enrichment_settings: EnrichmentSettings
    ) -> None:
        """Test attachment errors are the only fatal enrichment failure."""
        # Arrange
        processor = MagicMock()
        processor.process = AsyncMock(side_effect=ValueError("corrupt file"))
        enricher = RequestEnricher(collaborators, processor, enrichment_settings)

        # Act & Assert
        with pytest.raises(AttachmentProcessingError, match="corrupt file"):
            await enricher.enrich({"attachments": [{"type": "application/pdf"}]}, EnrichmentOptions())
