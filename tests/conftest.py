"""
Shared test fixtures and configuration for entire test suite.

Provides: in-memory metadata database, mocked Qdrant client, settings
objects with test-friendly limits, no-op sleep for retry paths
Dependencies: pytest, pytest-asyncio, sqlalchemy, aiosqlite
System role: Test infrastructure and fixture management
"""

from unittest.mock import AsyncMock, MagicMock

import pytest


@pytest.fixture
async def async_session_factory():
    """
    Create in-memory SQLite async database for testing.

    Yields:
        async_sessionmaker: Session factory bound to a fresh schema
    """
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
    from sqlalchemy.pool import StaticPool

    from rag_pipeline.boundary.db.base import Base

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    yield factory

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Sleep replacement recording requested delays without waiting."""
    return AsyncMock(return_value=None)


@pytest.fixture
def mock_qdrant_client() -> MagicMock:
    """
    Create mock AsyncQdrantClient.

    Returns:
        MagicMock: Client whose API methods are AsyncMocks
    """
    client = MagicMock()
    client.get_collections = AsyncMock(return_value=MagicMock(collections=[]))
    client.collection_exists = AsyncMock(return_value=True)
    client.create_collection = AsyncMock(return_value=True)
    client.create_payload_index = AsyncMock(return_value=None)
    client.query_points = AsyncMock(return_value=MagicMock(points=[]))
    client.scroll = AsyncMock(return_value=([], None))
    client.count = AsyncMock(return_value=MagicMock(count=0))
    client.upsert = AsyncMock(return_value=None)
    client.delete = AsyncMock(return_value=None)
    client.get_collection = AsyncMock(return_value=MagicMock(points_count=0))
    client.close = AsyncMock(return_value=None)
    return client


@pytest.fixture
def retrieval_settings():
    """Retrieval settings isolated from the environment."""
    from rag_pipeline.configs.retrieval import RetrievalSettings

    return RetrievalSettings(_env_file=None)


@pytest.fixture
def enrichment_settings():
    """Enrichment settings with a short request timeout."""
    from rag_pipeline.configs.enrichment import EnrichmentSettings

    return EnrichmentSettings(_env_file=None, request_timeout_s=2.0)
