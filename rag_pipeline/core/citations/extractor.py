"""
Citation extractor.

Resolves ``[n]`` markers in generated text against the ordered context
the generator saw, and prepares the answer for rendering: markers become
``⚡CITE{n}⚡`` tokens and a per-document sources list is attached.

Extraction never raises on malformed model output; it yields fewer or
fallback citations instead.

Dependencies: rag_pipeline.core.citations.passes
System role: Post-processing of generated answers
"""

import logging
import re
from collections.abc import Sequence

from rag_pipeline.core.citations.passes import (
    deduplicate,
    explicit_citations,
    marker_fallback_citations,
)
from rag_pipeline.models.citation import Citation, CitationSource, ContextItem, ProcessedResponse

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 200

CITATION_SECTION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"Hier sind die relevanten Zitate.*?:\s*\n\n(.*?)\n\nAntwort:", re.IGNORECASE | re.DOTALL),
    re.compile(r"Relevante Zitate.*?:\s*\n\n(.*?)\n\nAntwort:", re.IGNORECASE | re.DOTALL),
    re.compile(r"Zitate.*?:\s*\n\n(.*?)\n\nAntwort:", re.IGNORECASE | re.DOTALL),
)
_ANSWER_LINE = re.compile(r"\nAntwort:\s*(.*)$", re.IGNORECASE | re.DOTALL)
_INLINE_QUOTE = re.compile(r'\[\d{1,6}\]\s*"[^"]*"(?:\s*\([^)]*\))?')


def render_token(index: str) -> str:
    return f"⚡CITE{index}⚡"


def extract_citations(text: str, context: Sequence[ContextItem]) -> list[Citation]:
    """
    Extract citations from generated text.

    Args:
        text: Generated text with ``[n]`` markers
        context: Context items in the order shown to the generator

    Returns:
        list[Citation]: Unique by index, explicit citations first
    """
    if not isinstance(text, str) or not text:
        return []

    explicit = explicit_citations(text, context)
    fallback = marker_fallback_citations(text, context, covered={c.index for c in explicit})
    citations = deduplicate([*explicit, *fallback])
    logger.debug(
        f"{__name__}:extract_citations - {len(citations)} citations "
        f"({len(explicit)} explicit, {len(fallback)} synthesized)"
    )
    return citations


def _locate_citation_section(response_text: str) -> re.Match[str] | None:
    for pattern in CITATION_SECTION_PATTERNS:
        match = pattern.search(response_text)
        if match:
            return match
    return None


def _replace_markers(answer: str, citations: Sequence[Citation]) -> str:
    for citation in citations:
        answer = re.sub(rf"\[{re.escape(citation.index)}\]", render_token(citation.index), answer)
    return answer


def _build_sources(context: Sequence[ContextItem], citations: Sequence[Citation]) -> list[CitationSource]:
    sources: list[CitationSource] = []
    seen: set[str] = set()
    for item in context:
        if item.document_id is not None:
            if item.document_id in seen:
                continue
            seen.add(item.document_id)
        sources.append(
            CitationSource(
                document_id=item.document_id,
                title=item.title,
                chunk_text=item.content[:SNIPPET_LENGTH] + "...",
                similarity_score=item.similarity_score,
                citations=[
                    c for c in citations if item.document_id is not None and c.document_id == item.document_id
                ],
            )
        )
    return sources


def process_response_with_citations(response_text: str, context: Sequence[ContextItem]) -> ProcessedResponse:
    """
    Split a generated response into answer, citations and sources.

    Flow:
        1. A "Zitate ... Antwort:" section: citations come from the section,
           the answer is everything after "Antwort:"
        2. Otherwise extract from the whole text and, when citations were
           found, keep the text after an "Antwort:" line or strip inline
           quote blocks
        3. Replace markers with renderer tokens
        4. Attach one source entry per context document
    """
    if not isinstance(response_text, str):
        response_text = ""

    answer = response_text
    section = _locate_citation_section(response_text)
    if section is not None:
        citations = extract_citations(section.group(1), context)
        answer = response_text[section.end():].strip()
    else:
        citations = extract_citations(response_text, context)
        if citations:
            answer_match = _ANSWER_LINE.search(response_text)
            if answer_match:
                answer = answer_match.group(1).strip()
            else:
                answer = _INLINE_QUOTE.sub("", response_text).strip()

    logger.info(f"{__name__}:process_response_with_citations - {len(citations)} citations")
    return ProcessedResponse(
        answer=_replace_markers(answer, citations),
        citations=citations,
        sources=_build_sources(context, citations),
    )
