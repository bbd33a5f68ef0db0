"""
Hybrid retrieval configuration settings.

Fusion weights, reciprocal rank fusion constant, dynamic thresholds,
quality gate, confidence weighting and result cache sizing.

Dependencies: pydantic, pydantic_settings
System role: Ranking configuration for hybrid search
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RetrievalSettings(BaseSettings):
    """Hybrid search and ranking configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="RAG_HYBRID_",
        case_sensitive=False,
        extra="ignore",
    )

    default_limit: int = Field(default=10, ge=1, description="Results returned when no limit is given")
    default_threshold: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Minimum vector similarity (0.0-1.0)",
    )

    # Fusion
    vector_weight: float = Field(default=0.7, ge=0.0, description="Weighted fusion: vector share")
    text_weight: float = Field(default=0.3, ge=0.0, description="Weighted fusion: text share")
    use_rrf: bool = Field(default=True, description="Prefer reciprocal rank fusion")
    rrf_k: int = Field(default=60, ge=1, description="RRF rank constant")
    min_text_results_for_rrf: int = Field(
        default=3,
        description="Below this many text hits RRF falls back to weighted fusion",
    )
    fallback_vector_weight: float = Field(default=0.85, description="Vector share without real text matches")
    fallback_text_weight: float = Field(default=0.15, description="Text share without real text matches")
    balanced_weight: float = Field(default=0.5, description="Per-source share when both signals are real")

    # Dynamic thresholds
    enable_dynamic_thresholds: bool = Field(default=True, description="Raise vector threshold by text evidence")
    min_vector_with_text_threshold: float = Field(default=0.35, description="Floor when text matched")
    min_vector_only_threshold: float = Field(default=0.55, description="Floor when only vectors matched")

    # Quality gate
    enable_quality_gate: bool = Field(default=True, description="Drop weak fused results")
    min_final_score: float = Field(default=0.008, description="Minimum fused score")
    min_vector_only_final_score: float = Field(
        default=0.010,
        description="Minimum fused score for vector-only hits without text matches",
    )

    # Confidence weighting (RRF)
    enable_confidence_weighting: bool = Field(default=True, description="Scale RRF by list agreement")
    confidence_boost: float = Field(default=1.2, description="Multiplier for hits in both lists")
    confidence_penalty: float = Field(default=0.7, description="Multiplier for vector-only hits")

    # Payload quality scoring
    quality_filter_enabled: bool = Field(default=True, description="Drop chunks below quality_min")
    quality_min: float = Field(default=0.4, description="Minimum payload quality_score")
    quality_boost: float = Field(default=1.2, description="Quality rescoring strength")

    # Result cache
    cache_max_size: int = Field(default=200, ge=1, description="Cached search responses")
    cache_ttl_s: float = Field(default=900.0, description="Seconds a cached response stays valid")

    # Document grouping
    max_chunks_per_document: int = Field(default=10, ge=1, description="Chunks joined into relevant_content")
    max_excerpt_length: int = Field(default=300, ge=20, description="Characters kept per excerpt")
