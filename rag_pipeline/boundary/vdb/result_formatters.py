"""
Result formatters.

Convert raw store payloads into the per-domain hit variants. This is the
only place payload keys are interpreted, so a content example never
carries document fields and vice versa.

Dependencies: pydantic (models)
System role: Boundary conversion of vector store payloads
"""

from typing import Any

from rag_pipeline.models.search import (
    ContentExampleHit,
    DocumentHit,
    FusedHit,
    ScoredChunk,
    SocialMediaHit,
)


def extract_multi_field_content(payload: dict[str, Any]) -> str:
    """
    Pick the first non-empty content field.

    Order: content, content_data.content, content_data.caption, text, caption.
    """
    content_data = payload.get("content_data") or {}
    if not isinstance(content_data, dict):
        content_data = {}
    for candidate in (
        payload.get("content"),
        content_data.get("content"),
        content_data.get("caption"),
        payload.get("text"),
        payload.get("caption"),
    ):
        if isinstance(candidate, str) and candidate.strip():
            return candidate
    return ""


def _metadata_value(payload: dict[str, Any], key: str) -> Any:
    if payload.get(key) is not None:
        return payload[key]
    metadata = payload.get("metadata")
    if isinstance(metadata, dict):
        return metadata.get(key)
    return None


def _as_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def format_document_hit(hit: ScoredChunk | FusedHit, collection: str) -> DocumentHit:
    """Document chunk hit; title/filename fall back to nested metadata."""
    payload = hit.payload
    metadata = payload.get("metadata") if isinstance(payload.get("metadata"), dict) else {}
    fused = isinstance(hit, FusedHit)
    return DocumentHit(
        id=hit.id,
        score=hit.score,
        collection=collection,
        document_id=str(payload.get("document_id", "")),
        chunk_index=int(payload.get("chunk_index") or 0),
        chunk_text=payload.get("chunk_text") or "",
        title=_metadata_value(payload, "title") or "Untitled",
        filename=_metadata_value(payload, "filename") or "",
        url=_metadata_value(payload, "url"),
        section=payload.get("section"),
        published_at=_metadata_value(payload, "published_at"),
        user_id=payload.get("user_id"),
        quality_score=payload.get("quality_score"),
        search_method=hit.search_method if fused else "vector",
        original_vector_score=hit.original_vector_score if fused else hit.score,
        original_text_score=hit.original_text_score if fused else None,
        metadata=metadata,
    )


def format_content_example_hit(hit: ScoredChunk | FusedHit, collection: str) -> ContentExampleHit:
    payload = hit.payload
    content_data = payload.get("content_data")
    return ContentExampleHit(
        id=hit.id,
        score=hit.score,
        collection=collection,
        title=payload.get("title") or "",
        content=extract_multi_field_content(payload),
        type=payload.get("type"),
        categories=_as_str_list(payload.get("categories")),
        tags=_as_str_list(payload.get("tags")),
        description=payload.get("description"),
        content_data=content_data if isinstance(content_data, dict) else {},
        created_at=payload.get("created_at"),
    )


def format_social_media_hit(hit: ScoredChunk | FusedHit, collection: str) -> SocialMediaHit:
    payload = hit.payload
    return SocialMediaHit(
        id=hit.id,
        score=hit.score,
        collection=collection,
        content=extract_multi_field_content(payload),
        platform=payload.get("platform"),
        country=payload.get("country"),
        source_account=payload.get("source_account"),
        created_at=payload.get("created_at"),
    )
