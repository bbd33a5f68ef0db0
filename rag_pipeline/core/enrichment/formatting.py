"""
Knowledge fragment formatting.

Pure functions turning retrieved documents, saved texts, web search
summaries and drafts into the markdown fragments placed in
EnrichedState.knowledge, plus request-body helpers (URL detection,
draft theme).

Dependencies: None
System role: Prompt-facing text layout for enrichment results
"""

import math
import re
from collections.abc import Iterable
from typing import Any
from urllib.parse import urlparse

from rag_pipeline.models.collaborators import DocumentMetadata, SavedText
from rag_pipeline.models.enrichment import (
    AutoSelectedDocument,
    DocumentReference,
    RequestDocument,
    TextReference,
)
from rag_pipeline.models.search import DocumentResult, FullTextDocument

UNKNOWN = "Unbekannt"
CHUNKS_PER_PAGE = 2.5

WEBSEARCH_HINT = (
    "Hinweis: Aktuelle Informationen aus einer Websuche sind als Hintergrundwissen verfügbar. "
    "Du kannst diese bei Bedarf nutzen."
)
DRAFT_HINT = (
    "Hinweis: Ein schneller Vorentwurf wurde als Ausgangspunkt bereitgestellt. "
    "Du kannst diesen verfeinern, erweitern oder komplett neu formulieren."
)
DRAFT_SYSTEM_PROMPT = (
    "Du bist ein schneller Entwurfsassistent. Erstelle eine kurze, prägnante Vorlage als "
    "Ausgangspunkt für einen längeren Text. Fokussiere dich auf die Kernaussage und Struktur."
)

TEXT_TYPE_LABELS = {
    "antrag": "Antrag",
    "social": "Social Media",
    "universal": "Universal",
    "press": "Pressemitteilung",
    "gruene_jugend": "Grüne Jugend",
    "text": "Allgemeiner Text",
}

DRAFT_THEME_FIELDS = ("thema", "theme", "details", "inhalt")

_HTML_TAG = re.compile(r"<[^>]*>")
_URL = re.compile(r"https?://[^\s<>\"'()\[\]{}]+", re.IGNORECASE)
_URL_TRAILING = ".,;:!?"


def strip_html(text: str) -> str:
    return _HTML_TAG.sub("", text or "").strip()


def estimate_pages(chunk_count: int) -> int:
    return math.ceil(chunk_count / CHUNKS_PER_PAGE)


def count_words(text: str) -> int:
    return len(text.split())


def format_german_date(value: Any) -> str:
    """Render a date the way the de-DE locale does (no zero padding)."""
    if value is None or not hasattr(value, "day"):
        return UNKNOWN
    return f"{value.day}.{value.month}.{value.year}"


def url_domain(url: str) -> str:
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        return url
    return host.removeprefix("www.") or url


# ---------------------------------------------------------------------------
# Selected documents
# ---------------------------------------------------------------------------


def format_full_document(
    document: FullTextDocument,
    metadata: DocumentMetadata | None = None,
) -> tuple[str, DocumentReference]:
    """Format a reassembled document; relational metadata wins for title and filename."""
    title = metadata.title if metadata else document.title
    filename = (metadata.filename if metadata else document.filename) or UNKNOWN
    pages = estimate_pages(document.chunk_count)
    fragment = (
        f"## Dokument: {title}\n"
        f"**Datei:** {filename}\n"
        f"**Seiten:** ~{pages}\n"
        f"**Wörter:** ~{count_words(document.full_text)}\n"
        f"**Inhalt:** Volltext ({document.chunk_count} Abschnitte)\n"
        f"**Info:** Dokument vollständig übermittelt - {document.chunk_count} Chunks zusammengefügt\n\n"
        f"{document.full_text}"
    )
    reference = DocumentReference(
        title=title,
        filename=filename,
        page_count=pages,
        retrieval_method="full_text",
    )
    return fragment, reference


def format_vector_document(result: DocumentResult) -> tuple[str, DocumentReference]:
    """Format a hybrid search excerpt of a large document."""
    relevance = round(result.similarity_score * 100)
    info = f"Hybride Suche - {result.chunk_count} relevante Abschnitte ({relevance}% Relevanz)"
    fragment = (
        f"## Dokument: {result.title}\n"
        f"**Datei:** {result.filename}\n"
        f"**Seiten:** {UNKNOWN}\n"
        f"**Inhalt:** Intelligenter Auszug\n"
        f"**Info:** {info}\n\n"
        f"{result.relevant_content}"
    )
    reference = DocumentReference(
        title=result.title,
        filename=result.filename,
        retrieval_method="vector_search",
        relevance=relevance,
    )
    return fragment, reference


def format_auto_selected_document(
    result: DocumentResult,
    matched_query: str,
    original_query: str,
) -> tuple[str, AutoSelectedDocument]:
    percent = round(result.similarity_score * 100)
    variant = f' (Variante: "{matched_query}")' if matched_query != original_query else ""
    fragment = (
        f"## Dokument (Auto-ausgewählt): {result.title}\n"
        f"**Datei:** {result.filename}\n"
        f"**Relevanz:** {percent}%\n"
        f"**Inhalt:** Intelligenter Auszug\n"
        f"**Info:** Automatisch ausgewählt basierend auf Ihrer Anfrage{variant}\n\n"
        f"{result.relevant_content}"
    )
    selected = AutoSelectedDocument(
        id=result.document_id,
        title=result.title,
        filename=result.filename,
        relevance_score=result.similarity_score,
        relevance_percent=percent,
        matched_query=matched_query,
    )
    return fragment, selected


# ---------------------------------------------------------------------------
# Saved texts, web search, draft
# ---------------------------------------------------------------------------


def format_saved_text(text: SavedText) -> tuple[str, TextReference]:
    text_type = text.document_type or "text"
    label = TEXT_TYPE_LABELS.get(text_type, text_type)
    created = format_german_date(text.created_at)
    fragment = (
        f"## Text: {text.title}\n"
        f"**Typ:** {label}\n"
        f"**Wörter:** {text.word_count or UNKNOWN}\n"
        f"**Erstellt:** {created}\n\n"
        f"{strip_html(text.content)}"
    )
    reference = TextReference(
        title=text.title or UNKNOWN,
        type=label,
        word_count=text.word_count or 0,
        created_at=created,
    )
    return fragment, reference


def format_web_knowledge(summary: str) -> str:
    return f"HINTERGRUNDWISSEN (Websuche):\n{summary.strip()}"


def format_draft_knowledge(draft: str) -> str:
    return f"<vorarbeit>\nSCHNELLER VORENTWURF:\n{draft}\n</vorarbeit>"


def extract_draft_theme(body: dict[str, Any]) -> str:
    for field in DRAFT_THEME_FIELDS:
        value = body.get(field)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def build_draft_prompt(theme: str, body: dict[str, Any], request_type: str = "") -> str:
    platforms = body.get("platforms")
    platform_text = ", ".join(str(p) for p in platforms) if isinstance(platforms, list) else ""
    text_type = body.get("requestType") or request_type
    lines = [f"Thema: {theme}"]
    if platform_text:
        lines.append(f"Plattformen: {platform_text}")
    if text_type:
        lines.append(f"Texttyp: {text_type}")
    lines.append("Erstelle einen kurzen Entwurf (max 200 Wörter) als Grundlage für eine ausführlichere Ausarbeitung.")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# URLs
# ---------------------------------------------------------------------------


def _iter_strings(value: Any, skip_keys: tuple[str, ...]) -> Iterable[str]:
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for key, item in value.items():
            if key not in skip_keys:
                yield from _iter_strings(item, skip_keys)
    elif isinstance(value, list):
        for item in value:
            yield from _iter_strings(item, skip_keys)


def extract_urls(body: dict[str, Any], skip_keys: tuple[str, ...] = ("attachments", "documentKnowledge")) -> list[str]:
    """Find http(s) URLs in the request body's text fields, first occurrence order."""
    seen: dict[str, None] = {}
    for text in _iter_strings(body, skip_keys):
        for match in _URL.finditer(text):
            url = match.group(0).rstrip(_URL_TRAILING)
            if url:
                seen.setdefault(url, None)
    return list(seen)


def filter_new_urls(urls: Iterable[str], documents: Iterable[RequestDocument]) -> list[str]:
    known = {document.url for document in documents if document.url}
    return [url for url in urls if url not in known]
