"""
Collaborator payload models.

Shapes exchanged with external collaborators: crawler, web search,
query enhancer and the relational metadata store.

Dependencies: pydantic
System role: Collaborator contract types
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class CrawlResult(BaseModel):
    """Content extracted from one URL."""

    url: str
    title: str = ""
    content: str = ""
    word_count: int = 0
    extracted_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class WebSearchResult(BaseModel):
    """One ranked web search result."""

    title: str
    url: str
    domain: str | None = None
    content: str = ""


class WebSearchResponse(BaseModel):
    """Ranked results with an optional AI summary."""

    query: str
    results: list[WebSearchResult] = Field(default_factory=list)
    summary: str | None = None


class QueryEnhancement(BaseModel):
    """Query variants produced by the enhancer."""

    original_query: str
    enhanced_queries: list[str] = Field(default_factory=list)
    confidence: float = 0.0
    source: str = "llm"


class DocumentMetadata(BaseModel):
    """Relational metadata for one uploaded document."""

    id: str
    user_id: str
    title: str = "Untitled"
    filename: str = ""
    vector_count: int = 0
    file_size: int | None = None


class SavedText(BaseModel):
    """A user's saved text (generated or authored)."""

    id: str
    title: str = ""
    content: str = ""
    document_type: str | None = None
    word_count: int | None = None
    created_at: datetime | None = None
