"""
Collection catalog.

Static list of vector collections created at startup together with
their keyword and full-text payload indexes.

Dependencies: None
System role: Vector store schema catalog
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class CollectionSpec:
    """Schema for one named collection."""

    name: str
    keyword_fields: tuple[str, ...] = ()
    integer_fields: tuple[str, ...] = ()
    text_fields: tuple[str, ...] = ("chunk_text",)
    user_scoped: bool = False
    description: str = ""


DOCUMENTS = "documents"
GRUNDSATZ_DOCUMENTS = "grundsatz_documents"
USER_KNOWLEDGE = "user_knowledge"
CONTENT_EXAMPLES = "content_examples"
SOCIAL_MEDIA_EXAMPLES = "social_media_examples"
USER_TEXTS = "user_texts"
BUNDESTAG_CONTENT = "bundestag_content"
GRUENE_DE_DOCUMENTS = "gruene_de_documents"
GRUENE_AT_DOCUMENTS = "gruene_at_documents"

_CHUNK_KEYWORDS = ("document_id", "title", "source_type")

COLLECTION_CATALOG: tuple[CollectionSpec, ...] = (
    CollectionSpec(
        DOCUMENTS,
        keyword_fields=("user_id",) + _CHUNK_KEYWORDS,
        integer_fields=("chunk_index",),
        user_scoped=True,
        description="User-uploaded document chunks",
    ),
    CollectionSpec(
        GRUNDSATZ_DOCUMENTS,
        keyword_fields=_CHUNK_KEYWORDS,
        integer_fields=("chunk_index",),
        description="Party programme documents",
    ),
    CollectionSpec(
        USER_KNOWLEDGE,
        keyword_fields=("user_id", "knowledge_id"),
        user_scoped=True,
        description="User knowledge entries",
    ),
    CollectionSpec(
        CONTENT_EXAMPLES,
        keyword_fields=("type", "categories", "tags"),
        text_fields=("content",),
        description="Curated content examples",
    ),
    CollectionSpec(
        SOCIAL_MEDIA_EXAMPLES,
        keyword_fields=("platform", "country"),
        text_fields=("content",),
        description="Social media post examples",
    ),
    CollectionSpec(
        USER_TEXTS,
        keyword_fields=("user_id", "document_id", "document_type"),
        integer_fields=("chunk_index",),
        user_scoped=True,
        description="Saved user texts",
    ),
    CollectionSpec(
        BUNDESTAG_CONTENT,
        keyword_fields=("url", "section", "document_id"),
        integer_fields=("chunk_index",),
        description="Crawled parliamentary group pages",
    ),
    CollectionSpec(
        GRUENE_DE_DOCUMENTS,
        keyword_fields=("url", "section", "document_id"),
        integer_fields=("chunk_index",),
        description="Crawled gruene.de pages",
    ),
    CollectionSpec(
        GRUENE_AT_DOCUMENTS,
        keyword_fields=("url", "section", "document_id"),
        integer_fields=("chunk_index",),
        description="Crawled gruene.at pages",
    ),
)

_BY_NAME = {spec.name: spec for spec in COLLECTION_CATALOG}


def get_collection_spec(name: str) -> CollectionSpec | None:
    return _BY_NAME.get(name)


def collection_names() -> list[str]:
    return [spec.name for spec in COLLECTION_CATALOG]
