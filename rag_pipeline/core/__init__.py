"""
Core domain logic.

Retry and batch execution primitives, hybrid ranking, request enrichment
and citation extraction. Independent of concrete collaborator adapters.
"""
