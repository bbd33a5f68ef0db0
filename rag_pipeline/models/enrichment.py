"""
Request enrichment models.

Options accepted by the enrichment orchestrator, the per-task outcome
variants it settles, and the EnrichedState handed to prompt assembly.

Dependencies: pydantic
System role: Enrichment data structures
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from rag_pipeline.core.exceptions import ErrorKind


class TaskKind(str, Enum):
    """Enrichment task kinds."""

    URL = "url"
    WEBSEARCH = "websearch"
    VECTORSEARCH = "vectorsearch"
    TEXTS = "texts"
    AUTOVECTORSEARCH = "autovectorsearch"
    DRAFT = "draft"


class EnrichmentPhase(str, Enum):
    """Per-request lifecycle."""

    START = "start"
    ATTACHMENTS_PROCESSED = "attachments_processed"
    TASKS_LAUNCHED = "tasks_launched"
    TASKS_SETTLED = "tasks_settled"
    AGGREGATED = "aggregated"


class RequestDocument(BaseModel):
    """A document attached to (or crawled for) the request."""

    type: Literal["text"] = "text"
    text: str
    title: str = ""
    url: str | None = None
    word_count: int | None = None
    extracted_at: str | None = None
    content_source: Literal["attachment", "url_crawl"] = "attachment"


class WebSearchSource(BaseModel):
    title: str
    url: str
    domain: str | None = None


class DocumentReference(BaseModel):
    """Bibliography entry for a selected document."""

    title: str
    filename: str = ""
    page_count: int | None = None
    retrieval_method: Literal["full_text", "vector_search"]
    relevance: int | None = None


class TextReference(BaseModel):
    """Bibliography entry for a saved text."""

    title: str
    type: str
    word_count: int = 0
    created_at: str


class AutoSelectedDocument(BaseModel):
    id: str
    title: str
    filename: str = ""
    relevance_score: float
    relevance_percent: int
    matched_query: str


class EnrichmentOptions(BaseModel):
    """Flags and selections that decide which tasks run."""

    type: str = Field(default="universal", description="Request/route type")
    user_id: str | None = Field(default=None, description="Requesting user (scopes document access)")
    enable_urls: bool = True
    enable_web_search: bool = False
    enable_doc_qna: bool = True
    use_privacy_mode: bool = False
    web_search_query: str | None = None
    knowledge_content: str | None = None
    selected_document_ids: list[str] = Field(default_factory=list)
    selected_text_ids: list[str] = Field(default_factory=list)
    search_query: str | None = None
    use_automatic_search: bool = False
    enable_fast_draft: bool = False
    fast_draft_prompt: str | None = None
    instructions: str | None = None
    tool_instructions: list[str] = Field(default_factory=list)
    request_timeout_s: float | None = Field(
        default=None,
        gt=0,
        description="Overrides the configured request timeout",
    )


class TaskOutcome(BaseModel):
    """Settled result of one enrichment task (empty on failure)."""

    kind: TaskKind
    knowledge: list[str] = Field(default_factory=list)
    documents: list[RequestDocument] = Field(default_factory=list)
    document_references: list[DocumentReference] = Field(default_factory=list)
    text_references: list[TextReference] = Field(default_factory=list)
    web_search_sources: list[WebSearchSource] | None = None
    auto_selected_documents: list[AutoSelectedDocument] = Field(default_factory=list)
    enhancement: dict[str, Any] | None = None
    draft: str | None = None
    draft_time_ms: int = 0
    error_kind: ErrorKind | None = None
    error: str | None = None

    @property
    def contributed(self) -> bool:
        return bool(self.knowledge or self.documents or self.draft)

    @classmethod
    def failed(cls, kind: TaskKind, error_kind: ErrorKind, error: str) -> "TaskOutcome":
        return cls(kind=kind, error_kind=error_kind, error=error)


class EnrichmentMetadata(BaseModel):
    """Which sources contributed and how."""

    total_documents: int = 0
    enable_doc_qna: bool = False
    web_search_sources: list[WebSearchSource] | None = None
    use_privacy_mode: bool = False
    auto_search_used: bool = False
    auto_selected_documents: list[AutoSelectedDocument] = Field(default_factory=list)
    auto_search_enhancement: dict[str, Any] | None = None
    documents_preprocessed: bool = False
    documents_references: list[DocumentReference] | None = None
    texts_references: list[TextReference] | None = None
    draft_used: bool = False
    draft_length: int = 0
    draft_time_ms: int = 0
    contributing_sources: list[TaskKind] = Field(default_factory=list)
    failed_sources: dict[str, ErrorKind] = Field(default_factory=dict)


class EnrichedState(BaseModel):
    """Per-request aggregate handed to prompt assembly."""

    type: str = "universal"
    phase: EnrichmentPhase = EnrichmentPhase.START
    knowledge: list[str] = Field(default_factory=list)
    documents: list[RequestDocument] = Field(default_factory=list)
    instructions: str | None = None
    tool_instructions: list[str] = Field(default_factory=list)
    request: dict[str, Any] = Field(default_factory=dict)
    selected_document_ids: list[str] = Field(default_factory=list)
    selected_text_ids: list[str] = Field(default_factory=list)
    search_query: str | None = None
    enrichment_metadata: EnrichmentMetadata | None = None
