"""
Search domain models.

Typed search options, raw/fused hits with provenance, and the per-domain
result variants (document chunk, content example, social media example).
The variants form a tagged union on ``kind`` so shapes never leak across
domains.

Dependencies: pydantic
System role: Type definitions for retrieval operations
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, field_validator

SearchMethod = Literal["vector", "text", "hybrid"]
MatchType = Literal["exact", "variant", "token_fallback"]
FusionMethod = Literal["rrf", "weighted"]
PointId = Union[str, int]


def _clean_id_list(value: list[str] | None) -> list[str] | None:
    if value is None:
        return None
    cleaned = [str(v).strip() for v in value if v is not None and str(v).strip()]
    return cleaned or None


class SearchOptions(BaseModel):
    """Limit and threshold shared by all search calls."""

    limit: int = Field(default=10, ge=1, le=200, description="Maximum results")
    threshold: float = Field(default=0.3, ge=0.0, le=1.0, description="Minimum vector similarity")


class DocumentSearchOptions(SearchOptions):
    """Filters for document chunk collections."""

    user_id: str | None = Field(default=None, description="Owner filter (user collections)")
    document_ids: list[str] | None = Field(default=None, description="Restrict to these documents")
    section: str | None = Field(default=None, description="Section filter (crawled collections)")
    source_type: str | None = Field(default=None, description="Payload source_type filter")
    title: str | None = Field(default=None, description="Exact title filter")
    collection: str = Field(default="documents", description="Target collection")

    @field_validator("document_ids")
    @classmethod
    def normalize_document_ids(cls, value: list[str] | None) -> list[str] | None:
        return _clean_id_list(value)


class ContentExampleSearchOptions(SearchOptions):
    """Filters for the content examples collection."""

    content_type: str | None = Field(default=None, description="Example type (e.g. 'instagram')")
    categories: list[str] | None = Field(default=None, description="Any-of category filter")
    tags: list[str] | None = Field(default=None, description="Any-of tag filter")

    @field_validator("categories", "tags")
    @classmethod
    def normalize_lists(cls, value: list[str] | None) -> list[str] | None:
        return _clean_id_list(value)


class SocialMediaSearchOptions(SearchOptions):
    """Filters for the social media examples collection."""

    platform: str | None = Field(default=None, description="Platform filter")
    country: str | None = Field(default=None, description="Country filter")


class HybridSearchOptions(SearchOptions):
    """Fusion parameters for hybrid search."""

    vector_weight: float = Field(default=0.7, ge=0.0)
    text_weight: float = Field(default=0.3, ge=0.0)
    use_rrf: bool = Field(default=True)
    rrf_k: int = Field(default=60, ge=1)
    recall_limit: int | None = Field(default=None, ge=1, description="Candidate pool override")


class ScoredChunk(BaseModel):
    """Raw vector hit from the store."""

    id: PointId
    score: float
    payload: dict[str, Any] = Field(default_factory=dict)


class TextHit(BaseModel):
    """Lexical hit with its heuristic score."""

    id: PointId
    score: float
    payload: dict[str, Any] = Field(default_factory=dict)
    matched_variant: str = ""
    match_type: MatchType = "exact"


class FusedHit(BaseModel):
    """Fused hit carrying per-source provenance."""

    id: PointId
    score: float = Field(ge=0.0)
    payload: dict[str, Any] = Field(default_factory=dict)
    search_method: SearchMethod
    fusion_method: FusionMethod
    original_vector_score: float | None = None
    original_text_score: float | None = None
    confidence: float | None = None
    raw_rrf_score: float | None = None


class HybridSearchMetadata(BaseModel):
    """Diagnostics for one hybrid search."""

    vector_results: int = 0
    text_results: int = 0
    fusion_method: FusionMethod = "rrf"
    vector_weight: float = 0.7
    text_weight: float = 0.3
    dynamic_threshold: float = 0.3
    quality_filtered: bool = False
    auto_switched_from_rrf: bool = False
    has_real_text_matches: bool = False
    text_match_types: list[str] = Field(default_factory=list)


class HybridSearchResponse(BaseModel):
    """Fused hits plus fusion diagnostics."""

    results: list[FusedHit] = Field(default_factory=list)
    metadata: HybridSearchMetadata = Field(default_factory=HybridSearchMetadata)


class DocumentHit(BaseModel):
    """Chunk from a document collection."""

    kind: Literal["document"] = "document"
    id: PointId
    score: float
    collection: str
    document_id: str
    chunk_index: int = 0
    chunk_text: str = ""
    title: str = "Untitled"
    filename: str = ""
    url: str | None = None
    section: str | None = None
    published_at: str | None = None
    user_id: str | None = None
    quality_score: float | None = None
    search_method: SearchMethod = "vector"
    original_vector_score: float | None = None
    original_text_score: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ContentExampleHit(BaseModel):
    """Entry from the content examples collection."""

    kind: Literal["content_example"] = "content_example"
    id: PointId
    score: float
    collection: str
    title: str = ""
    content: str = ""
    type: str | None = None
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    description: str | None = None
    content_data: dict[str, Any] = Field(default_factory=dict)
    created_at: str | None = None


class SocialMediaHit(BaseModel):
    """Entry from the social media examples collection."""

    kind: Literal["social_media"] = "social_media"
    id: PointId
    score: float
    collection: str
    content: str = ""
    platform: str | None = None
    country: str | None = None
    source_account: str | None = None
    created_at: str | None = None


SearchHit = Annotated[
    Union[DocumentHit, ContentExampleHit, SocialMediaHit],
    Field(discriminator="kind"),
]


class DocumentResult(BaseModel):
    """Chunk hits grouped into one document-level result."""

    document_id: str
    title: str = "Untitled"
    filename: str = ""
    created_at: str | None = None
    relevant_content: str = ""
    similarity_score: float = 0.0
    chunk_index: int | None = None
    chunk_count: int = 0
    search_methods: list[str] = Field(default_factory=list)


class SearchResponse(BaseModel):
    """Envelope returned by retrieval service search operations."""

    success: bool = True
    results: list[Any] = Field(default_factory=list)
    query: str = ""
    search_type: str = "vector"
    message: str = ""
    cached: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)


class FullTextDocument(BaseModel):
    """Document reassembled from its chunks."""

    id: str
    title: str = "Untitled"
    filename: str = ""
    full_text: str
    chunk_count: int


class FullTextResult(BaseModel):
    """Bulk full-text retrieval outcome."""

    documents: list[FullTextDocument] = Field(default_factory=list)
    errors: list[dict[str, str]] = Field(default_factory=list)


class ContextChunk(BaseModel):
    """One chunk in a context window."""

    text: str
    chunk_index: int
    is_center: bool = False


class ChunkContext(BaseModel):
    """Center chunk with its neighbours."""

    center: ContextChunk
    context: list[ContextChunk] = Field(default_factory=list)


class UserVectorStats(BaseModel):
    """Per-user indexing statistics."""

    user_id: str
    unique_documents: int = 0
    total_vectors: int = 0
    collection_points: dict[str, int] = Field(default_factory=dict)
