"""
Collaborator contracts.

Structural types for everything the pipeline consumes but does not own.
Adapters in this package implement them; tests substitute mocks.

Dependencies: None
System role: Collaborator interface definitions
"""

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from rag_pipeline.models.collaborators import (
    CrawlResult,
    DocumentMetadata,
    QueryEnhancement,
    SavedText,
    WebSearchResponse,
)


@runtime_checkable
class EmbeddingService(Protocol):
    """Text -> vector."""

    @property
    def dimension(self) -> int: ...

    async def aembed_query(self, text: str) -> list[float]: ...


@runtime_checkable
class TextGenerator(Protocol):
    """Prompt + options -> text."""

    async def agenerate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str: ...


@runtime_checkable
class WebSearchService(Protocol):
    async def search(self, query: str) -> WebSearchResponse: ...


@runtime_checkable
class UrlCrawler(Protocol):
    async def crawl(self, url: str, timeout_s: float) -> CrawlResult: ...


@runtime_checkable
class QueryEnhancer(Protocol):
    async def enhance(self, query: str, limit: int = 3) -> QueryEnhancement: ...


@runtime_checkable
class MetadataStore(Protocol):
    """Relational lookups used by enrichment."""

    async def get_document_metadata(self, document_id: str, user_id: str) -> DocumentMetadata | None: ...

    async def get_saved_texts(
        self,
        text_ids: Sequence[str],
        user_id: str | None = None,
    ) -> list[SavedText]: ...


@runtime_checkable
class AttachmentProcessor(Protocol):
    """
    Turns raw request attachments into documents and knowledge.

    Returns a mapping with optional ``documents`` (list of dicts with
    ``text``/``title``) and ``knowledge`` (list of str).
    """

    async def process(
        self,
        attachments: list[dict[str, Any]],
        use_privacy_mode: bool,
        request_type: str,
        user_id: str | None,
    ) -> dict[str, Any]: ...
