"""
Application services.

Orchestration layer between request handlers and the core/boundary
layers.
"""

from rag_pipeline.application.services.enrichment_service import enrich_request
from rag_pipeline.application.services.retrieval_service import RetrievalService

__all__ = ["RetrievalService", "enrich_request"]
