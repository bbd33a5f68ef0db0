"""
Document-level grouping of chunk hits.

Dependencies: pydantic (models)
System role: Turns fused chunk hits into per-document results
"""

from collections.abc import Sequence
from typing import Any

from rag_pipeline.models.search import DocumentResult, FusedHit, ScoredChunk, TextHit

EXCERPT_SEPARATOR = "\n\n---\n\n"


def _payload_field(payload: dict[str, Any], key: str) -> Any:
    value = payload.get(key)
    if value:
        return value
    metadata = payload.get("metadata")
    if isinstance(metadata, dict):
        return metadata.get(key)
    return None


def _search_method(hit: ScoredChunk | FusedHit | TextHit) -> str:
    if isinstance(hit, FusedHit):
        return hit.search_method
    return "text" if isinstance(hit, TextHit) else "vector"


def truncate_excerpt(text: str, max_length: int) -> str:
    text = text.strip()
    if len(text) <= max_length:
        return text
    return text[: max_length - 3].rstrip() + "..."


def group_hits_by_document(
    hits: Sequence[ScoredChunk | FusedHit | TextHit],
    limit: int,
    max_chunks_per_document: int = 10,
    max_excerpt_length: int = 300,
) -> list[DocumentResult]:
    """
    Group chunk hits by ``document_id``.

    A group's similarity is its best chunk score. ``relevant_content``
    joins the group's top chunks, each truncated, highest score first.

    Args:
        hits: Chunk hits (any order)
        limit: Documents returned
        max_chunks_per_document: Chunks joined per document
        max_excerpt_length: Characters kept per chunk

    Returns:
        list[DocumentResult]: Documents sorted by descending similarity
    """
    groups: dict[str, list[ScoredChunk | FusedHit | TextHit]] = {}
    for hit in hits:
        document_id = hit.payload.get("document_id")
        if not document_id:
            continue
        groups.setdefault(str(document_id), []).append(hit)

    results: list[DocumentResult] = []
    for document_id, group in groups.items():
        group.sort(key=lambda hit: hit.score, reverse=True)
        best = group[0]
        top = group[:max_chunks_per_document]
        excerpts = [
            truncate_excerpt(hit.payload.get("chunk_text") or "", max_excerpt_length)
            for hit in top
        ]
        methods = sorted({_search_method(hit) for hit in group})
        results.append(
            DocumentResult(
                document_id=document_id,
                title=_payload_field(best.payload, "title") or "Untitled",
                filename=_payload_field(best.payload, "filename") or "",
                created_at=_payload_field(best.payload, "created_at"),
                relevant_content=EXCERPT_SEPARATOR.join(e for e in excerpts if e),
                similarity_score=best.score,
                chunk_index=best.payload.get("chunk_index"),
                chunk_count=len(group),
                search_methods=methods,
            )
        )

    results.sort(key=lambda result: result.similarity_score, reverse=True)
    return results[:limit]
