"""
External collaborator configuration settings.

Endpoints and model identifiers for web search, embeddings and
text generation adapters.

Dependencies: pydantic, pydantic_settings
System role: Collaborator wiring configuration
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CollaboratorSettings(BaseSettings):
    """Collaborator endpoints and models."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="COLLAB_",
        case_sensitive=False,
        extra="ignore",
    )

    searxng_url: str = Field(default="http://localhost:8080", description="SearXNG base URL")
    searxng_timeout_s: float = Field(default=10.0, description="Web search request timeout")
    searxng_max_results: int = Field(default=10, description="Results requested per web search")

    chat_model: str = Field(
        default="gemini-2.5-flash",
        description="Google chat model for drafts, summaries and query enhancement",
    )
    embedding_model: str = Field(
        default="models/gemini-embedding-001",
        description="Google embedding model ID",
    )
    crawler_user_agent: str = Field(
        default="rag-pipeline-crawler/0.1",
        description="User-Agent header sent when crawling URLs",
    )
