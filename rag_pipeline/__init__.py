"""
RAG orchestration core.

Vector-store connection lifecycle, hybrid retrieval, batched work,
multi-source request enrichment and citation extraction.
"""

__version__ = "0.1.0"
