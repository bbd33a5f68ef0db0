"""
Boundary layer.

Adapters for external systems: the Qdrant vector store, the relational
metadata store and collaborator services (embeddings, generation, web
search, crawling).
"""
