"""
Vector store configuration settings.

Manages Qdrant connection parameters and connection lifecycle tuning
(probe attempts, backoff, health check cadence).

Dependencies: pydantic, pydantic_settings
System role: Vector database configuration for retrieval
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class VectorStoreSettings(BaseSettings):
    """Qdrant vector store configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="QDRANT_",
        case_sensitive=False,
        extra="ignore",
    )

    url: str = Field(default="http://localhost:6333", description="Qdrant REST endpoint")
    api_key: str | None = Field(default=None, description="Qdrant API key (cloud deployments)")
    prefer_grpc: bool = Field(default=False, description="Use gRPC transport when available")
    timeout_s: float = Field(
        default=15.0,
        description="Per-operation timeout for store calls in seconds",
    )

    health_check_interval_s: float = Field(
        default=30.0,
        description="Seconds between background connection probes",
    )
    max_init_attempts: int = Field(
        default=3,
        ge=1,
        description="Connection probe attempts before the store is marked unavailable",
    )
    init_backoff_base_s: float = Field(
        default=2.0,
        ge=0.0,
        description="Base delay for probe backoff (base * 2^attempt)",
    )

    embedding_dimension: int = Field(
        default=1024,
        description="Vector size used when catalog collections are created",
    )
