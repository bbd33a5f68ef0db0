"""
Collaborator contracts and adapters.

Protocols for the external services the pipeline consumes plus the
default implementations (Gemini via LangChain, SearXNG and crawling via
httpx, text attachments).
"""

from rag_pipeline.boundary.collaborators.protocols import (
    AttachmentProcessor,
    EmbeddingService,
    MetadataStore,
    QueryEnhancer,
    TextGenerator,
    UrlCrawler,
    WebSearchService,
)

__all__ = [
    "AttachmentProcessor",
    "EmbeddingService",
    "MetadataStore",
    "QueryEnhancer",
    "TextGenerator",
    "UrlCrawler",
    "WebSearchService",
]
