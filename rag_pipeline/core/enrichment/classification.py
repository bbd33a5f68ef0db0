"""
Document-size classification.

Selected documents at or below the chunk threshold are sent as full
text; larger ones go through hybrid search restricted to their ids.

Dependencies: None
System role: Retrieval strategy selection for selected documents
"""

from collections.abc import Sequence
from typing import Literal

from rag_pipeline.models.collaborators import DocumentMetadata

RetrievalMethod = Literal["full_text", "vector_search"]

DEFAULT_CHUNK_THRESHOLD = 13


def retrieval_method_for(vector_count: int | None, threshold: int = DEFAULT_CHUNK_THRESHOLD) -> RetrievalMethod:
    """Pick the retrieval method for a document with ``vector_count`` chunks."""
    return "full_text" if (vector_count or 0) <= threshold else "vector_search"


def classify_documents(
    documents: Sequence[DocumentMetadata],
    threshold: int = DEFAULT_CHUNK_THRESHOLD,
) -> tuple[list[DocumentMetadata], list[DocumentMetadata]]:
    """
    Split documents into (full_text, vector_search) groups.

    Input order is preserved within each group.
    """
    small: list[DocumentMetadata] = []
    large: list[DocumentMetadata] = []
    for document in documents:
        if retrieval_method_for(document.vector_count, threshold) == "full_text":
            small.append(document)
        else:
            large.append(document)
    return small, large
