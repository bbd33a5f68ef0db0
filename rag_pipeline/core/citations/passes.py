"""
Citation resolution passes.

Each pass is a pure function of (text, context) producing citations.
``extract_citations`` composes them: explicit quoted citations first,
then minimal citations for bare ``[n]`` markers nothing explicit
covered, then de-duplication by index (first seen wins).

Dependencies: re
System role: Building blocks of the citation extractor
"""

import re
from collections.abc import Iterable, Sequence

from rag_pipeline.models.citation import Citation, ContextItem

FUZZY_MATCH_PREFIX = 20

# Order matters: the first pattern carries the document name.
EXPLICIT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r'\[(\d{1,6})\]\s*"([^"]+)"\s*\((?:Dokument|Document):\s*([^)]+)\)'),
    re.compile(r'\[(\d{1,6})\]\s*"([^"]+)"'),
    re.compile(r"\[(\d{1,6})\]\s*„([^“\"]+)[“\"]"),
    re.compile(r"\[(\d{1,6})\]\s*'([^']+)'"),
    re.compile(r'>\s*\[(\d{1,6})\]\s*"([^"]+)"'),
)
MARKER_PATTERN = re.compile(r"\[(\d{1,6})\]")


def _citation_from(item: ContextItem, index: str, cited_text: str, title: str | None = None) -> Citation:
    return Citation(
        index=index,
        cited_text=cited_text,
        document_title=title or item.title,
        document_id=item.document_id,
        similarity_score=item.similarity_score,
        chunk_index=item.chunk_index,
        filename=item.filename,
    )


def _fuzzy_match(cited_text: str, context: Sequence[ContextItem]) -> ContextItem | None:
    prefix = cited_text[:FUZZY_MATCH_PREFIX]
    for item in context:
        if prefix in item.content:
            return item
    return None


def find_marker_indices(text: str) -> list[str]:
    """Distinct ``[n]`` marker numbers in order of first appearance."""
    seen: dict[str, None] = {}
    for match in MARKER_PATTERN.finditer(text):
        seen.setdefault(match.group(1), None)
    return list(seen)


def explicit_citations(text: str, context: Sequence[ContextItem]) -> list[Citation]:
    """
    Resolve quoted citations such as ``[1] "text" (Dokument: name)``.

    In-range indices resolve positionally. Out-of-range ones resolve to the
    first context item containing the start of the quote, or are skipped.
    """
    citations: list[Citation] = []
    for pattern in EXPLICIT_PATTERNS:
        for match in pattern.finditer(text):
            number = match.group(1)
            position = int(number) - 1
            cited_text = match.group(2).strip()
            title = match.group(3).strip() if pattern.groups >= 3 and match.group(3) else None

            if 0 <= position < len(context):
                citations.append(_citation_from(context[position], number, cited_text, title))
            elif position >= 0:
                item = _fuzzy_match(match.group(2), context)
                if item is not None:
                    citations.append(_citation_from(item, number, cited_text))
    return citations


def marker_fallback_citations(
    text: str,
    context: Sequence[ContextItem],
    covered: Iterable[str] = (),
) -> list[Citation]:
    """
    Minimal citations for bare markers without an explicit citation.

    An out-of-range marker resolves to the last context item so every
    visible marker points somewhere.
    """
    if not context:
        return []
    skip = set(covered)
    citations: list[Citation] = []
    for number in find_marker_indices(text):
        if number in skip:
            continue
        position = int(number) - 1
        if position < 0:
            continue
        if position < len(context):
            item = context[position]
            citations.append(_citation_from(item, number, f"Reference from {item.title}"))
        else:
            item = context[-1]
            citations.append(_citation_from(item, number, f"Reference to additional content from {item.title}"))
    return citations


def deduplicate(citations: Iterable[Citation]) -> list[Citation]:
    unique: dict[str, Citation] = {}
    for citation in citations:
        unique.setdefault(citation.index, citation)
    return list(unique.values())
