"""
Enrichment tasks.

One coroutine per task kind. Each returns a TaskOutcome and raises on
failure; the orchestrator turns a raised error into an empty outcome.
Per-item failures inside a task (one URL, one document's metadata) are
dropped without failing the task.

Dependencies: asyncio, rag_pipeline.boundary.collaborators
System role: Work units launched by the enrichment orchestrator
"""

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from rag_pipeline.boundary.collaborators.protocols import (
    MetadataStore,
    QueryEnhancer,
    TextGenerator,
    UrlCrawler,
    WebSearchService,
)
from rag_pipeline.configs.enrichment import EnrichmentSettings
from rag_pipeline.core.enrichment.classification import classify_documents
from rag_pipeline.core.enrichment.formatting import (
    DRAFT_SYSTEM_PROMPT,
    build_draft_prompt,
    extract_draft_theme,
    extract_urls,
    filter_new_urls,
    format_auto_selected_document,
    format_full_document,
    format_saved_text,
    format_vector_document,
    format_web_knowledge,
    url_domain,
)
from rag_pipeline.models.collaborators import DocumentMetadata
from rag_pipeline.models.enrichment import (
    RequestDocument,
    TaskKind,
    TaskOutcome,
    WebSearchSource,
)
from rag_pipeline.models.search import (
    DocumentResult,
    DocumentSearchOptions,
    FullTextResult,
    HybridSearchOptions,
    SearchResponse,
)

logger = logging.getLogger(__name__)

AUTO_SEARCH_VECTOR_WEIGHT = 0.7
AUTO_SEARCH_TEXT_WEIGHT = 0.3


class DocumentRetriever(Protocol):
    """The retrieval operations enrichment needs."""

    async def get_documents_full_text(self, user_id: str, document_ids: Sequence[str]) -> FullTextResult: ...

    async def hybrid_search_documents(
        self,
        query: str,
        options: DocumentSearchOptions,
        hybrid: HybridSearchOptions | None = None,
    ) -> SearchResponse: ...


@dataclass
class EnrichmentCollaborators:
    """Collaborators available to enrichment tasks; a missing one disables its task."""

    retriever: DocumentRetriever | None = None
    metadata_store: MetadataStore | None = None
    web_search: WebSearchService | None = None
    crawler: UrlCrawler | None = None
    query_enhancer: QueryEnhancer | None = None
    generator: TextGenerator | None = None


async def crawl_urls(
    body: dict[str, Any],
    existing: Sequence[RequestDocument],
    crawler: UrlCrawler,
    settings: EnrichmentSettings,
) -> TaskOutcome:
    """Crawl up to ``max_urls`` new URLs found in the request body."""
    detected = extract_urls(body)
    urls = filter_new_urls(detected, existing)
    if not urls:
        if detected:
            logger.info(f"{__name__}:crawl_urls - {len(detected)} URLs already processed")
        return TaskOutcome(kind=TaskKind.URL)

    urls = urls[: settings.max_urls]
    logger.info(f"{__name__}:crawl_urls - Crawling {', '.join(url_domain(u) for u in urls)}")

    async def _crawl(url: str) -> RequestDocument | None:
        try:
            result = await crawler.crawl(url, settings.url_crawl_timeout_s)
        except Exception as e:
            logger.warning(f"{__name__}:crawl_urls - Failed to crawl {url}: {type(e).__name__}: {e}")
            return None
        return RequestDocument(
            text=result.content,
            title=result.title or f"Content from {url_domain(url)}",
            url=result.url or url,
            word_count=result.word_count,
            extracted_at=result.extracted_at.isoformat() if result.extracted_at else None,
            content_source="url_crawl",
        )

    crawled = await asyncio.gather(*(_crawl(url) for url in urls))
    documents = [document for document in crawled if document is not None]
    logger.info(f"{__name__}:crawl_urls - Crawled {len(documents)}/{len(urls)} URLs")
    return TaskOutcome(kind=TaskKind.URL, documents=documents)


async def search_web(
    query: str,
    web_search: WebSearchService,
    settings: EnrichmentSettings,
) -> TaskOutcome:
    """Web search with optional summary as background knowledge."""
    response = await web_search.search(query)
    knowledge = [format_web_knowledge(response.summary)] if response.summary and response.summary.strip() else []
    sources = [
        WebSearchSource(title=result.title, url=result.url, domain=result.domain)
        for result in response.results[: settings.web_search_max_sources]
    ]
    logger.info(
        f"{__name__}:search_web - knowledge={'yes' if knowledge else 'no'}, sources={len(sources)}"
    )
    return TaskOutcome(kind=TaskKind.WEBSEARCH, knowledge=knowledge, web_search_sources=sources)


async def _accessible_documents(
    document_ids: Sequence[str],
    user_id: str,
    metadata_store: MetadataStore,
) -> list[DocumentMetadata]:
    lookups = await asyncio.gather(
        *(metadata_store.get_document_metadata(document_id, user_id) for document_id in document_ids),
        return_exceptions=True,
    )
    documents: list[DocumentMetadata] = []
    for document_id, lookup in zip(document_ids, lookups):
        if isinstance(lookup, BaseException):
            logger.warning(
                f"{__name__}:_accessible_documents - Metadata lookup failed for {document_id}: "
                f"{type(lookup).__name__}: {lookup}"
            )
        elif lookup is not None:
            documents.append(lookup)
    return documents


async def retrieve_selected_documents(
    document_ids: Sequence[str],
    query: str,
    user_id: str,
    retriever: DocumentRetriever,
    metadata_store: MetadataStore,
    settings: EnrichmentSettings,
) -> TaskOutcome:
    """
    Retrieve user-selected documents by size.

    Flow:
        1. Look up relational metadata (drops inaccessible documents)
        2. Classify by chunk count against the threshold
        3. Full text for small documents, hybrid search for large ones
        4. Format full-text fragments first, then excerpts

    Raises:
        Exception: When every retrieval branch that ran has failed
    """
    started = time.perf_counter()
    documents = await _accessible_documents(document_ids, user_id, metadata_store)
    if not documents:
        logger.info(f"{__name__}:retrieve_selected_documents - No accessible documents")
        return TaskOutcome(kind=TaskKind.VECTORSEARCH)

    small, large = classify_documents(documents, settings.chunk_threshold)
    logger.info(
        f"{__name__}:retrieve_selected_documents - {len(small)} small (full text), "
        f"{len(large)} large (vector search)"
    )

    branches: list[str] = []
    calls = []
    if small:
        branches.append("full_text")
        calls.append(retriever.get_documents_full_text(user_id, [d.id for d in small]))
    if large:
        branches.append("vector_search")
        calls.append(
            retriever.hybrid_search_documents(
                query.strip(),
                DocumentSearchOptions(
                    user_id=user_id,
                    document_ids=[d.id for d in large],
                    limit=settings.large_document_search_limit,
                ),
            )
        )

    settled = await asyncio.gather(*calls, return_exceptions=True)
    failures = [result for result in settled if isinstance(result, BaseException)]
    if failures and len(failures) == len(settled):
        raise failures[0]

    outcome = TaskOutcome(kind=TaskKind.VECTORSEARCH)
    by_id = {d.id: d for d in small}
    for branch, result in zip(branches, settled):
        if isinstance(result, BaseException):
            logger.warning(
                f"{__name__}:retrieve_selected_documents - {branch} failed: {type(result).__name__}: {result}"
            )
            continue
        if branch == "full_text":
            for error in result.errors:
                logger.warning(f"{__name__}:retrieve_selected_documents - Full text missing: {error}")
            for document in result.documents:
                fragment, reference = format_full_document(document, by_id.get(document.id))
                outcome.knowledge.append(fragment)
                outcome.document_references.append(reference)
        else:
            for hit in result.results:
                fragment, reference = format_vector_document(hit)
                outcome.knowledge.append(fragment)
                outcome.document_references.append(reference)

    logger.info(
        f"{__name__}:retrieve_selected_documents - {len(outcome.knowledge)} fragments in "
        f"{(time.perf_counter() - started) * 1000:.0f}ms"
    )
    return outcome


async def fetch_saved_texts(
    text_ids: Sequence[str],
    user_id: str | None,
    metadata_store: MetadataStore,
) -> TaskOutcome:
    texts = await metadata_store.get_saved_texts(text_ids, user_id)
    outcome = TaskOutcome(kind=TaskKind.TEXTS)
    for text in texts:
        fragment, reference = format_saved_text(text)
        outcome.knowledge.append(fragment)
        outcome.text_references.append(reference)
    logger.info(f"{__name__}:fetch_saved_texts - {len(texts)}/{len(text_ids)} texts")
    return outcome


async def _query_variants(
    query: str,
    enhancer: QueryEnhancer | None,
    use_privacy_mode: bool,
    limit: int,
) -> tuple[list[str], dict[str, Any] | None]:
    if use_privacy_mode or enhancer is None:
        return [query], None
    try:
        enhancement = await enhancer.enhance(query, limit=limit)
    except Exception as e:
        logger.warning(f"{__name__}:_query_variants - Enhancement failed, using original: {type(e).__name__}: {e}")
        return [query], None
    if not enhancement.enhanced_queries:
        return [query], None
    return list(enhancement.enhanced_queries), {
        "originalQuery": enhancement.original_query,
        "enhancedQueries": list(enhancement.enhanced_queries),
        "confidence": enhancement.confidence,
        "source": enhancement.source,
    }


async def auto_search_documents(
    query: str,
    user_id: str,
    retriever: DocumentRetriever,
    enhancer: QueryEnhancer | None,
    settings: EnrichmentSettings,
    use_privacy_mode: bool = False,
) -> TaskOutcome:
    """
    Search all of the user's documents without a manual selection.

    Enhanced variants replace the original query. Hits are merged by
    document id keeping the best-scoring variant, then cut to the
    configured limit.
    """
    queries, enhancement = await _query_variants(
        query, enhancer, use_privacy_mode, settings.query_variant_limit
    )
    limit = settings.auto_search_limit
    hybrid = HybridSearchOptions(
        vector_weight=AUTO_SEARCH_VECTOR_WEIGHT,
        text_weight=AUTO_SEARCH_TEXT_WEIGHT,
    )
    responses = await asyncio.gather(
        *(
            retriever.hybrid_search_documents(
                variant.strip(),
                DocumentSearchOptions(
                    user_id=user_id,
                    limit=limit * 2,
                    threshold=settings.auto_search_threshold,
                ),
                hybrid,
            )
            for variant in queries
        )
    )

    best: dict[str, tuple[DocumentResult, str]] = {}
    for variant, response in zip(queries, responses):
        for result in response.results:
            current = best.get(result.document_id)
            if current is None or result.similarity_score > current[0].similarity_score:
                best[result.document_id] = (result, variant)

    top = sorted(best.values(), key=lambda pair: pair[0].similarity_score, reverse=True)[:limit]
    outcome = TaskOutcome(kind=TaskKind.AUTOVECTORSEARCH)
    if not top:
        return outcome

    for result, variant in top:
        fragment, selected = format_auto_selected_document(result, variant, query)
        outcome.knowledge.append(fragment)
        outcome.auto_selected_documents.append(selected)
    outcome.enhancement = enhancement
    logger.info(
        f"{__name__}:auto_search_documents - Selected {len(top)} documents from {len(queries)} queries"
    )
    return outcome


async def generate_draft(
    body: dict[str, Any],
    generator: TextGenerator,
    settings: EnrichmentSettings,
    prompt: str | None = None,
    request_type: str = "",
) -> TaskOutcome:
    """Quick preliminary draft placed ahead of all other knowledge."""
    theme = extract_draft_theme(body)
    if not theme:
        logger.info(f"{__name__}:generate_draft - Skipped: no theme in request")
        return TaskOutcome(kind=TaskKind.DRAFT)

    started = time.perf_counter()
    content = await generator.agenerate(
        prompt or build_draft_prompt(theme, body, request_type),
        system_prompt=DRAFT_SYSTEM_PROMPT,
        max_tokens=settings.draft_max_tokens,
        temperature=settings.draft_temperature,
    )
    content = (content or "").strip()
    if len(content) < settings.draft_min_length:
        logger.info(f"{__name__}:generate_draft - Result too short, discarded")
        return TaskOutcome(kind=TaskKind.DRAFT)

    elapsed_ms = int((time.perf_counter() - started) * 1000)
    logger.info(f"{__name__}:generate_draft - Draft ready ({elapsed_ms}ms, {len(content)} chars)")
    return TaskOutcome(kind=TaskKind.DRAFT, draft=content, draft_time_ms=elapsed_ms)
