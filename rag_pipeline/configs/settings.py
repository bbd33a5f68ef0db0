"""
Unified application settings.

Aggregates all configuration modules into a single Settings class.
Provides a cached factory for the dependency container.

Dependencies: All config modules
System role: Central configuration aggregator for the application
"""

from functools import lru_cache

from pydantic import Field

from rag_pipeline.configs.base import BaseSettings
from rag_pipeline.configs.collaborators import CollaboratorSettings
from rag_pipeline.configs.database import DatabaseSettings
from rag_pipeline.configs.enrichment import EnrichmentSettings
from rag_pipeline.configs.performance import PerformanceSettings
from rag_pipeline.configs.retrieval import RetrievalSettings
from rag_pipeline.configs.vector_store import VectorStoreSettings


class Settings(BaseSettings):
    """Unified application settings aggregating all config modules."""

    # Aggregated settings
    vector_store: VectorStoreSettings = Field(default_factory=VectorStoreSettings)
    performance: PerformanceSettings = Field(default_factory=PerformanceSettings)
    retrieval: RetrievalSettings = Field(default_factory=RetrievalSettings)
    enrichment: EnrichmentSettings = Field(default_factory=EnrichmentSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    collaborators: CollaboratorSettings = Field(default_factory=CollaboratorSettings)


@lru_cache
def get_settings() -> Settings:
    """
    Get application settings singleton.

    Returns Settings instance, cached for dependency injection.
    Environment variables loaded once at startup.

    Returns:
        Settings: Application settings instance

    Usage:
        from rag_pipeline.configs import get_settings
        settings = get_settings()
    """
    return Settings()
