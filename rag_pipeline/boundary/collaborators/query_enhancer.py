"""
LLM query enhancer.

Asks the text generator for alternative phrasings of a search query and
parses a strict JSON answer. Any parse failure raises, and the caller
falls back to the unenhanced query.

Dependencies: rag_pipeline.boundary.collaborators.protocols
System role: Query expansion for automatic document search
"""

import json
import logging
import re

from rag_pipeline.boundary.collaborators.protocols import TextGenerator
from rag_pipeline.core.exceptions import CollaboratorError
from rag_pipeline.models.collaborators import QueryEnhancement

logger = logging.getLogger(__name__)

ENHANCER_SYSTEM_PROMPT = """Du formulierst Suchanfragen für eine Dokumentensuche um.
Beantworte die Anfrage NICHT. Erfinde keine Fakten.
Gib NUR gültiges JSON ohne Markdown zurück:
{"queries": [string, ...], "confidence": number}"""

ENHANCER_USER_TEMPLATE = """Erzeuge bis zu {limit} alternative Suchanfragen (Synonyme, Fachbegriffe,
ausgeschriebene Abkürzungen), die dieselbe Absicht ausdrücken.
Die erste Anfrage ist die bereinigte Originalanfrage.

Anfrage: "{query}\""""

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def parse_enhancement(raw: str, original_query: str, limit: int) -> QueryEnhancement:
    """
    Parse the generator's JSON answer.

    Raises:
        CollaboratorError: No JSON, invalid JSON or no usable queries
    """
    match = _JSON_OBJECT.search(raw or "")
    if not match:
        raise CollaboratorError("Query enhancer returned no JSON", collaborator="query_enhancer")
    try:
        data = json.loads(match.group())
    except json.JSONDecodeError as e:
        raise CollaboratorError(
            f"Query enhancer returned invalid JSON: {str(e)[:50]}",
            collaborator="query_enhancer",
        ) from e

    queries: list[str] = []
    for candidate in data.get("queries") or []:
        if isinstance(candidate, str) and candidate.strip() and candidate.strip() not in queries:
            queries.append(candidate.strip())
    if not queries:
        raise CollaboratorError("Query enhancer returned no queries", collaborator="query_enhancer")

    confidence = data.get("confidence", 0.0)
    if not isinstance(confidence, (int, float)):
        confidence = 0.0
    return QueryEnhancement(
        original_query=original_query,
        enhanced_queries=queries[:limit],
        confidence=max(0.0, min(1.0, float(confidence))),
        source="llm",
    )


class LLMQueryEnhancer:
    """QueryEnhancer backed by a TextGenerator."""

    def __init__(self, generator: TextGenerator, max_tokens: int = 300, temperature: float = 0.2) -> None:
        self._generator = generator
        self._max_tokens = max_tokens
        self._temperature = temperature

    async def enhance(self, query: str, limit: int = 3) -> QueryEnhancement:
        raw = await self._generator.agenerate(
            ENHANCER_USER_TEMPLATE.format(limit=limit, query=query),
            system_prompt=ENHANCER_SYSTEM_PROMPT,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
        )
        enhancement = parse_enhancement(raw, query, limit)
        logger.info(
            f"{__name__}:enhance - {len(enhancement.enhanced_queries)} variants "
            f"(confidence {enhancement.confidence:.2f})"
        )
        return enhancement
