"""
Request enrichment: task planning, concurrent execution and aggregation.
"""

from rag_pipeline.core.enrichment.classification import classify_documents, retrieval_method_for
from rag_pipeline.core.enrichment.orchestrator import RequestEnricher
from rag_pipeline.core.enrichment.tasks import DocumentRetriever, EnrichmentCollaborators

__all__ = [
    "DocumentRetriever",
    "EnrichmentCollaborators",
    "RequestEnricher",
    "classify_documents",
    "retrieval_method_for",
]
