"""
Hybrid retrieval core.

Lexical scoring, rank fusion, document grouping and the HybridSearcher
that combines them over the vector store.
"""

from rag_pipeline.core.retrieval.fusion import reciprocal_rank_fusion, weighted_fusion
from rag_pipeline.core.retrieval.grouping import group_hits_by_document
from rag_pipeline.core.retrieval.hybrid import HybridSearcher

__all__ = [
    "HybridSearcher",
    "group_hits_by_document",
    "reciprocal_rank_fusion",
    "weighted_fusion",
]
