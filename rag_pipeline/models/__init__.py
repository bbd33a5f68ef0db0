"""
Domain models.

Pydantic models shared across layers: search options and hits,
enrichment state, citations and collaborator payloads.
"""
