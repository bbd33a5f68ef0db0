from rag_pipeline.core.citations.extractor import (
    extract_citations,
    process_response_with_citations,
    render_token,
)

__all__ = ["extract_citations", "process_response_with_citations", "render_token"]
