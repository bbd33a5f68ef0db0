"""
Test suite for the SearXNG web search adapter.

HTTP is served by httpx.MockTransport; the generator is an AsyncMock.

System role: Verification of web search collaborator
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from rag_pipeline.boundary.collaborators.web_search import SearxngWebSearch, build_summary_prompt, extract_domain
from rag_pipeline.core.exceptions import (
    CollaboratorError,
    ConnectivityError,
    OperationTimeoutError,
    ValidationError,
)
from rag_pipeline.models.collaborators import WebSearchResult

SEARXNG_PAYLOAD = {
    "results": [
        {"title": "Klimabericht", "url": "https://www.example.org/klima", "content": "Emissionen sinken"},
        {"title": None, "url": "https://news.example/2", "content": None},
        {"title": "Ohne Link", "content": "x"},
        {"title": "Dritter", "url": "https://third.example/3", "content": "drei"},
    ]
}


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHelpers:
    """Test suite for pure helpers."""

    def test_extract_domain_should_drop_www(self) -> None:
        """Test domain normalization."""
        assert extract_domain("https://www.example.org/a?b=1") == "example.org"
        assert extract_domain("") == "unknown"

    def test_build_summary_prompt_should_truncate_long_content(self) -> None:
        """Test excerpts are capped and numbered."""
        result = WebSearchResult(title="T", url="https://a.example", domain="a.example", content="x" * 400)
        prompt = build_summary_prompt("Frage", [result])
        assert 'Frage/Anliegen: "Frage"' in prompt
        assert "1. **T** (a.example)" in prompt
        assert "x" * 300 + "..." in prompt
        assert "x" * 301 not in prompt


class TestSearxngWebSearch:
    """Test suite for SearxngWebSearch.search."""

    @pytest.mark.asyncio
    async def test_should_map_results_and_skip_entries_without_url(self) -> None:
        """Test result mapping, limits and request parameters."""
        # Arrange
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=SEARXNG_PAYLOAD)

        async with _client(handler) as client:
            search = SearxngWebSearch("http://searxng:8080/", max_results=3, client=client)

            # Act
            response = await search.search("klima")

        # Assert
        assert [r.url for r in response.results] == ["https://www.example.org/klima", "https://news.example/2"]
        assert response.results[0].domain == "example.org"
        assert response.results[1].title == "Untitled"
        assert response.summary is None
        assert seen[0].url.path == "/search"
        assert seen[0].url.params["format"] == "json"
        assert seen[0].url.params["q"] == "klima"

    @pytest.mark.asyncio
    async def test_should_attach_generated_summary(self) -> None:
        """Test the generator summary is returned alongside results."""
        # Arrange
        generator = MagicMock()
        generator.agenerate = AsyncMock(return_value="Zusammenfassung")

        async with _client(lambda request: httpx.Response(200, json=SEARXNG_PAYLOAD)) as client:
            search = SearxngWebSearch("http://searxng", generator=generator, client=client)

            # Act
            response = await search.search("klima")

        # Assert
        assert response.summary == "Zusammenfassung"
        assert "Klimabericht" in generator.agenerate.await_args.args[0]

    @pytest.mark.asyncio
    async def test_failed_summary_should_keep_results(self) -> None:
        """Test summary errors are swallowed."""
        # Arrange
        generator = MagicMock()
        generator.agenerate = AsyncMock(side_effect=CollaboratorError("llm down"))

        async with _client(lambda request: httpx.Response(200, json=SEARXNG_PAYLOAD)) as client:
            search = SearxngWebSearch("http://searxng", generator=generator, client=client)

            # Act
            response = await search.search("klima")

        # Assert
        assert response.summary is None
        assert len(response.results) == 3

    @pytest.mark.asyncio
    async def test_blank_query_should_raise_validation_error(self) -> None:
        """Test queries are required."""
        with pytest.raises(ValidationError):
            await SearxngWebSearch("http://searxng").search("  ")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "handler, expected",
        [
            (lambda request: httpx.Response(500, text="boom"), CollaboratorError),
            (lambda request: httpx.Response(200, text="not json"), CollaboratorError),
            (lambda request: httpx.Response(200, json={"answers": []}), CollaboratorError),
        ],
    )
    async def test_bad_responses_should_map_to_collaborator_error(self, handler, expected) -> None:
        """Test HTTP errors, invalid JSON and wrong structure."""
        async with _client(handler) as client:
            with pytest.raises(expected):
                await SearxngWebSearch("http://searxng", client=client).search("klima")

    @pytest.mark.asyncio
    async def test_transport_failures_should_map_to_taxonomy(self) -> None:
        """Test timeouts and connection errors."""
        # Arrange
        def timeout_handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        def refused_handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        # Act & Assert
        async with _client(timeout_handler) as client:
            with pytest.raises(OperationTimeoutError):
                await SearxngWebSearch("http://searxng", client=client).search("klima")
        async with _client(refused_handler) as client:
            with pytest.raises(ConnectivityError):
                await SearxngWebSearch("http://searxng", client=client).search("klima")
