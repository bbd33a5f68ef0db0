"""
SearXNG web search adapter.

Queries a SearXNG instance's JSON API over httpx and optionally asks the
text generator for an answer-style summary of the top results. A failed
summary keeps the results.

Dependencies: httpx
System role: WebSearchService collaborator implementation
"""

import logging
from typing import Any
from urllib.parse import urlparse

import httpx

from rag_pipeline.boundary.collaborators.protocols import TextGenerator
from rag_pipeline.configs.collaborators import CollaboratorSettings
from rag_pipeline.core.exceptions import (
    CollaboratorError,
    ConnectivityError,
    OperationTimeoutError,
    ValidationError,
)
from rag_pipeline.models.collaborators import WebSearchResponse, WebSearchResult

logger = logging.getLogger(__name__)

SUMMARY_RESULT_COUNT = 8
SUMMARY_EXCERPT_LENGTH = 300


def extract_domain(url: str) -> str:
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        return url or "unknown"
    return host.removeprefix("www.") or url or "unknown"


def build_summary_prompt(query: str, results: list[WebSearchResult]) -> str:
    blocks = []
    for index, result in enumerate(results[:SUMMARY_RESULT_COUNT], start=1):
        content = result.content
        if len(content) > SUMMARY_EXCERPT_LENGTH:
            content = content[:SUMMARY_EXCERPT_LENGTH] + "..."
        blocks.append(f"{index}. **{result.title}** ({result.domain})\nInhalt: {content}\nURL: {result.url}\n")
    return (
        "Beantworte die folgende Frage oder das Anliegen des Nutzers direkt und umfassend, "
        "basierend auf den bereitgestellten Informationen. Die Quellen dienen als "
        "Hintergrundinformationen.\n\n"
        f'Frage/Anliegen: "{query}"\n\n'
        f"Verfügbare Informationen:\n{chr(10).join(blocks)}"
    )


class SearxngWebSearch:
    """WebSearchService over SearXNG."""

    def __init__(
        self,
        base_url: str,
        timeout_s: float = 10.0,
        max_results: int = 10,
        language: str = "de-DE",
        generator: TextGenerator | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._max_results = max_results
        self._language = language
        self._generator = generator
        self._client = client

    @classmethod
    def from_settings(
        cls,
        settings: CollaboratorSettings,
        generator: TextGenerator | None = None,
    ) -> "SearxngWebSearch":
        return cls(
            base_url=settings.searxng_url,
            timeout_s=settings.searxng_timeout_s,
            max_results=settings.searxng_max_results,
            generator=generator,
        )

    async def _fetch(self, query: str) -> dict[str, Any]:
        params = {
            "q": query,
            "format": "json",
            "categories": "general",
            "language": self._language,
            "safesearch": "0",
        }
        headers = {"Accept": "application/json"}
        url = f"{self._base_url}/search"
        try:
            if self._client is not None:
                response = await self._client.get(url, params=params, headers=headers, timeout=self._timeout_s)
            else:
                async with httpx.AsyncClient(timeout=self._timeout_s) as client:
                    response = await client.get(url, params=params, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            raise OperationTimeoutError(
                "Web search timed out",
                operation="web_search",
                timeout_s=self._timeout_s,
            ) from e
        except httpx.TransportError as e:
            raise ConnectivityError(f"Web search unreachable: {e}") from e
        except (httpx.HTTPStatusError, ValueError) as e:
            raise CollaboratorError(f"Web search failed: {e}", collaborator="searxng") from e

        if not isinstance(data, dict) or not isinstance(data.get("results"), list):
            raise CollaboratorError("Invalid response structure from SearXNG", collaborator="searxng")
        return data

    async def search(self, query: str) -> WebSearchResponse:
        """
        Run a web search.

        Args:
            query: Search query

        Returns:
            WebSearchResponse: Ranked results plus optional summary
        """
        if not query or not query.strip():
            raise ValidationError("Valid search query is required", field="query")

        data = await self._fetch(query)
        results = [
            WebSearchResult(
                title=raw.get("title") or "Untitled",
                url=raw["url"],
                domain=extract_domain(raw["url"]),
                content=raw.get("content") or "",
            )
            for raw in data["results"][: self._max_results]
            if raw.get("url")
        ]
        logger.info(f"{__name__}:search - {len(results)} results for query")

        summary = None
        if self._generator is not None and results:
            try:
                summary = await self._generator.agenerate(
                    build_summary_prompt(query, results),
                    system_prompt="Du bist ein hilfreicher Assistent, der basierend auf Webinhalten fundierte Antworten gibt.",
                    max_tokens=1000,
                    temperature=0.3,
                )
            except Exception as e:
                logger.warning(f"{__name__}:search - Summary failed, keeping results: {type(e).__name__}: {e}")

        return WebSearchResponse(query=query, results=results, summary=summary or None)
