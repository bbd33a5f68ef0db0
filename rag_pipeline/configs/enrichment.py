"""
Request enrichment configuration settings.

Document-size classification threshold, crawl limits, automatic search
parameters, fast-draft generation options and the request-level timeout.

Dependencies: pydantic, pydantic_settings
System role: Enrichment orchestration configuration
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnrichmentSettings(BaseSettings):
    """Per-request enrichment limits."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ENRICHMENT_",
        case_sensitive=False,
        extra="ignore",
    )

    chunk_threshold: int = Field(
        default=13,
        ge=0,
        description="Documents with at most this many chunks are sent as full text",
    )
    large_document_search_limit: int = Field(
        default=5,
        ge=1,
        description="Hybrid search limit for documents above the chunk threshold",
    )

    max_urls: int = Field(default=5, ge=1, description="URLs crawled per request")
    url_crawl_timeout_s: float = Field(default=15.0, description="Timeout per crawl")

    auto_search_limit: int = Field(default=3, ge=1, description="Documents kept by automatic search")
    auto_search_threshold: float = Field(default=0.6, description="Threshold for automatic search")
    query_variant_limit: int = Field(default=3, ge=1, description="Variants requested from the enhancer")

    web_search_max_sources: int = Field(default=10, ge=0, description="Sources reported from web search")

    draft_min_length: int = Field(default=20, description="Shorter drafts are discarded")
    draft_max_tokens: int = Field(default=500, description="Token budget for the fast draft")
    draft_temperature: float = Field(default=0.4, description="Sampling temperature for the fast draft")

    request_timeout_s: float = Field(
        default=60.0,
        description="Pending enrichment tasks are cancelled after this many seconds",
    )
