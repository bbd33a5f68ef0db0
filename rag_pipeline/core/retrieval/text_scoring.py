"""
Lexical query helpers.

Query normalization, variant generation and the heuristic text score
used for full-text hits.

Dependencies: None
System role: Text-side scoring for hybrid retrieval
"""

import re
import unicodedata

_PUNCTUATION = re.compile(r"[^\w\s-]", re.UNICODE)
_WHITESPACE = re.compile(r"\s+")
_TOKEN_SPLIT = re.compile(r"[\s\-_/]+")


def normalize_query(query: str) -> str:
    """Lowercase, fold accents and ß, drop punctuation, collapse whitespace."""
    if not query:
        return ""
    text = query.lower().replace("ß", "ss")
    decomposed = unicodedata.normalize("NFKD", text)
    folded = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    folded = _PUNCTUATION.sub(" ", folded)
    return _WHITESPACE.sub(" ", folded).strip()


def tokenize_query(query: str) -> list[str]:
    return [token for token in _TOKEN_SPLIT.split(query.lower()) if token]


def generate_query_variants(query: str) -> list[str]:
    """
    Variants searched in full-text mode, deduplicated in order.

    1. the lowercased query
    2. the accent/punctuation folded form
    3. the hyphen form: hyphens removed when present ("klima-schutz" ->
       "klimaschutz"), otherwise words joined by hyphens
    """
    lowered = _WHITESPACE.sub(" ", query.strip().lower())
    if not lowered:
        return []

    normalized = normalize_query(query)
    if "-" in lowered:
        hyphen_form = lowered.replace("-", "")
    else:
        words = lowered.split(" ")
        hyphen_form = "-".join(words) if len(words) > 1 else ""

    variants: list[str] = []
    for candidate in (lowered, normalized, hyphen_form):
        if candidate and candidate not in variants:
            variants.append(candidate)
    return variants


def calculate_text_score(term: str, text: str | None, position: int) -> float:
    """
    Heuristic relevance of a lexical hit.

    Term frequency (capped) times a position penalty times a term length
    factor, clamped to [0.1, 1.0].

    Args:
        term: Original search term
        text: Chunk text
        position: Index of the hit in merge order

    Returns:
        float: Text score in [0.1, 1.0]
    """
    if not text or not term:
        return 0.1

    matches = len(re.findall(re.escape(term.lower()), text.lower()))
    score = min(matches * 0.1, 0.8)
    score *= max(0.1, 1 - position * 0.1)
    score *= min(1.0, len(term) / 10)
    return max(0.1, min(1.0, score))
