"""
Performance configuration settings.

Resource limits for batched work: batch size, concurrency, retries
and per-operation timeouts.

Dependencies: pydantic, pydantic_settings
System role: Concurrency and retry tuning
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PerformanceSettings(BaseSettings):
    """Batching, retry and timeout limits."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="RAG_PERF_",
        case_sensitive=False,
        extra="ignore",
    )

    batch_size: int = Field(default=10, ge=1, description="Items per batch")
    max_concurrent: int = Field(default=10, ge=1, description="Batches in flight at once")
    max_retries: int = Field(default=3, ge=1, description="Attempts per batch before giving up")
    retry_delay_ms: int = Field(default=1000, ge=0, description="Base backoff delay in ms")
    batch_timeout_ms: int = Field(default=30000, ge=1, description="Hard timeout per batch attempt")
    search_timeout_ms: int = Field(default=15000, ge=1, description="Timeout for a search call")
    embedding_timeout_ms: int = Field(default=10000, ge=1, description="Timeout for an embedding call")

    @property
    def retry_delay_s(self) -> float:
        return self.retry_delay_ms / 1000

    @property
    def batch_timeout_s(self) -> float:
        return self.batch_timeout_ms / 1000

    @property
    def search_timeout_s(self) -> float:
        return self.search_timeout_ms / 1000

    @property
    def embedding_timeout_s(self) -> float:
        return self.embedding_timeout_ms / 1000
