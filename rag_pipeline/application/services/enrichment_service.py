"""
Enrichment service.

Single entry point request handlers call to turn a generation request
into an EnrichedState.

Dependencies: rag_pipeline.core.enrichment, rag_pipeline.dependencies
System role: Enrichment application service
"""

import logging
from typing import Any

import pydantic

from rag_pipeline.core.enrichment import RequestEnricher
from rag_pipeline.core.exceptions import ValidationError
from rag_pipeline.models.enrichment import EnrichedState, EnrichmentOptions
from rag_pipeline.observability.correlation import reset_request_id, set_request_id

logger = logging.getLogger(__name__)


async def enrich_request(
    request_body: dict[str, Any],
    options: EnrichmentOptions | dict[str, Any] | None = None,
    enricher: RequestEnricher | None = None,
    request_id: str | None = None,
) -> EnrichedState:
    """
    Enrich a generation request.

    Args:
        request_body: Raw request payload (form fields, attachments, URLs)
        options: Enrichment flags; a dict is validated into EnrichmentOptions
        enricher: Enricher to use (defaults to the container's)
        request_id: ID stamped on every log line of this request (generated if None)

    Returns:
        EnrichedState: Ordered knowledge, documents and contribution metadata

    Raises:
        ValidationError: Options failed validation
        AttachmentProcessingError: Attachment processing failed
    """
    if options is None:
        options = EnrichmentOptions()
    elif isinstance(options, dict):
        try:
            options = EnrichmentOptions.model_validate(options)
        except pydantic.ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or None
            logger.error(f"{__name__}:enrich_request - Invalid options: {first.get('msg')} (field={field})")
            raise ValidationError(
                f"Invalid enrichment options: {first.get('msg')}",
                field=field,
                details={"errors": e.error_count()},
            ) from e

    if enricher is None:
        from rag_pipeline.dependencies import get_request_enricher

        enricher = get_request_enricher()

    token = set_request_id(request_id)
    try:
        return await enricher.enrich(request_body or {}, options)
    finally:
        reset_request_id(token)
