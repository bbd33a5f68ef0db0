"""
Request enrichment orchestrator.

Turns a generation request into an EnrichedState: processes attachments,
decides the task list from the request flags, runs all tasks
concurrently under one request timeout, and merges their outcomes in a
fixed order (fast draft first, everything else in completion order).

A failing or timed-out task degrades to an empty contribution; only an
attachment failure aborts the request.

Dependencies: asyncio, rag_pipeline.core.enrichment.tasks
System role: Per-request enrichment coordinator
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from rag_pipeline.boundary.collaborators.protocols import AttachmentProcessor
from rag_pipeline.configs.enrichment import EnrichmentSettings
from rag_pipeline.core.enrichment.formatting import DRAFT_HINT, WEBSEARCH_HINT, format_draft_knowledge
from rag_pipeline.core.enrichment.tasks import (
    EnrichmentCollaborators,
    auto_search_documents,
    crawl_urls,
    fetch_saved_texts,
    generate_draft,
    retrieve_selected_documents,
    search_web,
)
from rag_pipeline.core.exceptions import AttachmentProcessingError, ErrorKind, classify_error
from rag_pipeline.models.enrichment import (
    EnrichedState,
    EnrichmentMetadata,
    EnrichmentOptions,
    EnrichmentPhase,
    RequestDocument,
    TaskKind,
    TaskOutcome,
)
from rag_pipeline.observability.log_utils import log_exception_with_context, summarize_failures

logger = logging.getLogger(__name__)

TaskFactory = Callable[[], Awaitable[TaskOutcome]]


class RequestEnricher:
    """
    Per-request enrichment coordinator.

    Stateless between requests; collaborators and settings are injected
    once and shared.
    """

    def __init__(
        self,
        collaborators: EnrichmentCollaborators | None = None,
        attachment_processor: AttachmentProcessor | None = None,
        settings: EnrichmentSettings | None = None,
    ) -> None:
        """
        Initialize enricher.

        Args:
            collaborators: Services used by the enrichment tasks
            attachment_processor: Turns request attachments into documents
            settings: Limits and timeouts
        """
        self._collaborators = collaborators or EnrichmentCollaborators()
        self._attachments = attachment_processor
        self._settings = settings or EnrichmentSettings()

    @property
    def collaborators(self) -> EnrichmentCollaborators:
        return self._collaborators

    async def enrich(self, request_body: dict[str, Any], options: EnrichmentOptions) -> EnrichedState:
        """
        Enrich a request.

        Flow:
            1. Seed state (knowledge_content, instructions)
            2. Pre-processed document knowledge or attachment processing
            3. Launch the planned tasks concurrently
            4. Wait up to the request timeout, cancel what is still pending
            5. Aggregate outcomes and build metadata

        Args:
            request_body: Raw request payload
            options: Flags and selections

        Returns:
            EnrichedState: Aggregated knowledge, documents and metadata

        Raises:
            AttachmentProcessingError: Attachment processing failed
        """
        logger.info(
            f"{__name__}:enrich - Starting (type={options.type}, urls={options.enable_urls}, "
            f"search={options.enable_web_search}, privacy={options.use_privacy_mode}, "
            f"documents={len(options.selected_document_ids)})"
        )
        state = EnrichedState(
            type=options.type,
            knowledge=[options.knowledge_content] if options.knowledge_content else [],
            instructions=options.instructions,
            tool_instructions=list(options.tool_instructions),
            request=request_body,
            selected_document_ids=list(options.selected_document_ids),
            selected_text_ids=list(options.selected_text_ids),
            search_query=options.search_query,
        )

        preprocessed = await self._apply_attachments(state, request_body, options)
        state.phase = EnrichmentPhase.ATTACHMENTS_PROCESSED

        plan = self._plan_tasks(request_body, options, state.documents)
        state.phase = EnrichmentPhase.TASKS_LAUNCHED
        outcomes = await self._run_tasks(plan, options)
        state.phase = EnrichmentPhase.TASKS_SETTLED

        self._aggregate(state, outcomes, options, preprocessed)
        state.phase = EnrichmentPhase.AGGREGATED

        metadata = state.enrichment_metadata
        logger.info(
            f"{__name__}:enrich - Complete (documents={len(state.documents)}, knowledge={len(state.knowledge)}, "
            f"contributing={[k.value for k in metadata.contributing_sources]}, "
            f"failed={summarize_failures(metadata.failed_sources)})"
        )
        return state

    async def _apply_attachments(
        self,
        state: EnrichedState,
        body: dict[str, Any],
        options: EnrichmentOptions,
    ) -> bool:
        """Returns True when the body carried pre-processed document knowledge."""
        if body.get("documentKnowledge"):
            state.knowledge.append(str(body["documentKnowledge"]))
            logger.info(f"{__name__}:_apply_attachments - Using pre-processed document knowledge")
            return True

        attachments = body.get("attachments")
        if not attachments:
            return False
        if self._attachments is None:
            logger.warning(f"{__name__}:_apply_attachments - Attachments present but no processor configured")
            return False

        try:
            result = await self._attachments.process(
                attachments,
                options.use_privacy_mode,
                options.type,
                options.user_id or body.get("userId"),
            )
            state.documents.extend(RequestDocument(**document) for document in result.get("documents") or [])
            state.knowledge.extend(result.get("knowledge") or [])
        except Exception as e:
            logger.error(f"{__name__}:_apply_attachments - {type(e).__name__}: {e}")
            raise AttachmentProcessingError(f"Attachment processing failed: {e}") from e
        return False

    def _plan_tasks(
        self,
        body: dict[str, Any],
        options: EnrichmentOptions,
        documents: list[RequestDocument],
    ) -> list[tuple[TaskKind, TaskFactory]]:
        c = self._collaborators
        s = self._settings
        privacy = options.use_privacy_mode
        plan: list[tuple[TaskKind, TaskFactory]] = []

        def _add(kind: TaskKind, enabled: bool, available: bool, factory: TaskFactory) -> None:
            if not enabled:
                return
            if not available:
                logger.info(f"{__name__}:_plan_tasks - {kind.value} skipped: collaborator not configured")
                return
            plan.append((kind, factory))

        existing = list(documents)
        _add(
            TaskKind.URL,
            options.enable_urls and not privacy,
            c.crawler is not None,
            lambda: crawl_urls(body, existing, c.crawler, s),
        )
        _add(
            TaskKind.WEBSEARCH,
            options.enable_web_search and bool(options.web_search_query),
            c.web_search is not None,
            lambda: search_web(options.web_search_query, c.web_search, s),
        )
        _add(
            TaskKind.VECTORSEARCH,
            bool(options.selected_document_ids)
            and bool(options.search_query)
            and not privacy
            and bool(options.user_id),
            c.retriever is not None and c.metadata_store is not None,
            lambda: retrieve_selected_documents(
                options.selected_document_ids,
                options.search_query,
                options.user_id,
                c.retriever,
                c.metadata_store,
                s,
            ),
        )
        _add(
            TaskKind.TEXTS,
            bool(options.selected_text_ids),
            c.metadata_store is not None,
            lambda: fetch_saved_texts(options.selected_text_ids, options.user_id, c.metadata_store),
        )

        manual_selection = bool(options.selected_document_ids or options.selected_text_ids)
        if options.use_automatic_search and manual_selection:
            logger.info(f"{__name__}:_plan_tasks - Automatic search skipped: manual selection takes priority")
        _add(
            TaskKind.AUTOVECTORSEARCH,
            options.use_automatic_search
            and not manual_selection
            and bool(options.search_query)
            and bool(options.user_id),
            c.retriever is not None,
            lambda: auto_search_documents(
                options.search_query,
                options.user_id,
                c.retriever,
                c.query_enhancer,
                s,
                use_privacy_mode=privacy,
            ),
        )
        _add(
            TaskKind.DRAFT,
            options.enable_fast_draft and not privacy,
            c.generator is not None,
            lambda: generate_draft(body, c.generator, s, options.fast_draft_prompt, options.type),
        )
        return plan

    async def _run_tasks(
        self,
        plan: list[tuple[TaskKind, TaskFactory]],
        options: EnrichmentOptions,
    ) -> list[TaskOutcome]:
        """Run planned tasks; returns outcomes in completion order (timeouts last)."""
        if not plan:
            return []

        timeout_s = options.request_timeout_s or self._settings.request_timeout_s
        completed: list[TaskOutcome] = []

        async def _guarded(kind: TaskKind, factory: TaskFactory) -> None:
            try:
                outcome = await factory()
            except Exception as e:
                error_kind = classify_error(e)
                log_exception_with_context(
                    logger,
                    f"{__name__}:_run_tasks - {kind.value} failed",
                    e,
                    task=kind.value,
                    error_kind=error_kind.value,
                )
                outcome = TaskOutcome.failed(kind, error_kind, str(e))
            completed.append(outcome)

        logger.info(f"{__name__}:_run_tasks - Running {len(plan)} tasks (timeout={timeout_s}s)")
        tasks = {
            asyncio.create_task(_guarded(kind, factory), name=f"enrich-{kind.value}"): kind
            for kind, factory in plan
        }
        _, pending = await asyncio.wait(tasks, timeout=timeout_s)

        if pending:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            for task in pending:
                kind = tasks[task]
                logger.warning(f"{__name__}:_run_tasks - {kind.value} cancelled after {timeout_s}s")
                completed.append(
                    TaskOutcome.failed(kind, ErrorKind.TIMEOUT, f"Cancelled after {timeout_s}s")
                )
        return completed

    def _aggregate(
        self,
        state: EnrichedState,
        outcomes: list[TaskOutcome],
        options: EnrichmentOptions,
        preprocessed: bool,
    ) -> None:
        metadata = EnrichmentMetadata(use_privacy_mode=options.use_privacy_mode, documents_preprocessed=preprocessed)
        document_references = []
        text_references = []
        draft: TaskOutcome | None = None

        for outcome in outcomes:
            if outcome.error_kind is not None:
                metadata.failed_sources[outcome.kind.value] = outcome.error_kind
                continue
            if outcome.contributed:
                metadata.contributing_sources.append(outcome.kind)

            if outcome.kind == TaskKind.DRAFT:
                if outcome.draft:
                    draft = outcome
                continue

            state.documents.extend(outcome.documents)
            state.knowledge.extend(outcome.knowledge)
            document_references.extend(outcome.document_references)
            text_references.extend(outcome.text_references)

            if outcome.kind == TaskKind.WEBSEARCH:
                metadata.web_search_sources = outcome.web_search_sources
                if outcome.knowledge:
                    state.tool_instructions.append(WEBSEARCH_HINT)
            elif outcome.kind == TaskKind.AUTOVECTORSEARCH and outcome.knowledge:
                metadata.auto_search_used = options.use_automatic_search
                metadata.auto_selected_documents = list(outcome.auto_selected_documents)
                metadata.auto_search_enhancement = outcome.enhancement

        if draft is not None:
            state.knowledge.insert(0, format_draft_knowledge(draft.draft))
            state.tool_instructions.append(DRAFT_HINT)
            metadata.draft_used = True
            metadata.draft_length = len(draft.draft)
            metadata.draft_time_ms = draft.draft_time_ms

        metadata.total_documents = len(state.documents)
        metadata.enable_doc_qna = options.enable_doc_qna and bool(state.documents)
        metadata.documents_references = document_references or None
        metadata.texts_references = text_references or None
        state.enrichment_metadata = metadata
