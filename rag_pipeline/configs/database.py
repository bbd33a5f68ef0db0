"""
Database configuration settings.

Connection parameters for the relational metadata store that answers
"how many chunks does this document have" and "give me these saved
texts". The store only reads, so the pool defaults are modest.

Dependencies: pydantic, pydantic_settings
System role: Database connection configuration for ORM
"""

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from rag_pipeline.configs.base import BaseSettings


class DatabaseSettings(BaseSettings):
    """PostgreSQL connection for the metadata store (POSTGRES_* variables)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="POSTGRES_",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: str = "postgres"
    db: str = Field(default="ragpipeline", description="Database holding documents and saved texts")

    pool_size: int = Field(default=5, ge=1, description="Persistent pooled connections")
    max_overflow: int = Field(default=10, ge=0, description="Extra connections under burst")
    pool_timeout: int = Field(default=30, ge=1, description="Seconds to wait for a pooled connection")
    echo_sql: bool = Field(default=False, description="Log emitted SQL")

    sslmode: str = Field(default="prefer", description="libpq sslmode (disable, prefer, require)")

    def _dsn(self, scheme: str) -> str:
        return f"{scheme}://{self.user}:{self.password}@{self.host}:{self.port}/{self.db}"

    @property
    def database_url(self) -> str:
        """libpq-style URL for external tooling."""
        return f"{self._dsn('postgresql')}?sslmode={self.sslmode}"

    @property
    def async_database_url(self) -> str:
        """
        SQLAlchemy asyncpg URL.

        asyncpg does not understand sslmode; only "require" is forwarded,
        as its ssl parameter.
        """
        url = self._dsn("postgresql+asyncpg")
        return f"{url}?ssl=require" if self.sslmode == "require" else url
