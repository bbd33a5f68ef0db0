"""
Citation domain model.

Represents the context items supplied to the generator and the citations
resolved from numbered markers in its output.

Dependencies: pydantic
System role: Citation data structures
"""

from typing import Any

from pydantic import BaseModel, Field


class ContextItem(BaseModel):
    """One retrieval context entry, in the order it was shown to the model."""

    title: str = "Unknown document"
    content: str = ""
    document_id: str | None = None
    similarity_score: float | None = None
    chunk_index: int | None = None
    filename: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class Citation(BaseModel):
    """Citation resolved from an ``[n]`` marker."""

    index: str = Field(description="Marker number as it appears in the text")
    cited_text: str
    document_title: str
    document_id: str | None = None
    similarity_score: float | None = None
    chunk_index: int | None = None
    filename: str | None = None


class CitationSource(BaseModel):
    """Context document with the citations that point at it."""

    document_id: str | None = None
    title: str
    chunk_text: str
    similarity_score: float | None = None
    citations: list[Citation] = Field(default_factory=list)


class ProcessedResponse(BaseModel):
    """Answer with markers replaced by renderer tokens."""

    answer: str
    citations: list[Citation] = Field(default_factory=list)
    sources: list[CitationSource] = Field(default_factory=list)
