"""
Qdrant vector store adapter.

Typed query/insert/delete over the named collections of the catalog.
Every public operation goes through the connection guard and maps
qdrant_client / transport exceptions onto the pipeline taxonomy:

- transport failures -> ConnectivityError (connection marked disconnected)
- per-call timeout -> OperationTimeoutError
- anything else -> VectorStoreError

Dependencies: qdrant_client, httpx, tenacity (via core.retry)
System role: Vector store boundary
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx
from qdrant_client import AsyncQdrantClient, models
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse

from rag_pipeline.boundary.vdb.collections import COLLECTION_CATALOG, CollectionSpec
from rag_pipeline.boundary.vdb.connection_manager import ConnectionManager
from rag_pipeline.boundary.vdb.vector_schemas import ChunkRecord, StoredPoint
from rag_pipeline.core.exceptions import (
    ConnectivityError,
    OperationTimeoutError,
    RagPipelineError,
    ValidationError,
    VectorStoreError,
)
from rag_pipeline.core.retry import RetryPolicy, call_with_retry
from rag_pipeline.models.search import ScoredChunk

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRANSPORT_ERRORS = (ResponseHandlingException, httpx.TransportError, ConnectionError)


async def ensure_collections(
    client: AsyncQdrantClient,
    vector_size: int,
    catalog: tuple[CollectionSpec, ...] = COLLECTION_CATALOG,
) -> list[str]:
    """
    Create missing catalog collections with their payload indexes.

    Used as the connection manager's ``on_connected`` hook. Existing
    collections are left untouched.

    Args:
        client: Connected client
        vector_size: Embedding dimensionality for new collections
        catalog: Collection specs to enforce

    Returns:
        list[str]: Names of the collections that were created
    """
    created: list[str] = []
    for spec in catalog:
        if await client.collection_exists(collection_name=spec.name):
            continue

        logger.info(f"{__name__}:ensure_collections - Creating collection '{spec.name}'")
        await client.create_collection(
            collection_name=spec.name,
            vectors_config=models.VectorParams(size=vector_size, distance=models.Distance.COSINE),
        )
        for field_name in spec.keyword_fields:
            await client.create_payload_index(
                collection_name=spec.name,
                field_name=field_name,
                field_schema=models.PayloadSchemaType.KEYWORD,
            )
        for field_name in spec.integer_fields:
            await client.create_payload_index(
                collection_name=spec.name,
                field_name=field_name,
                field_schema=models.PayloadSchemaType.INTEGER,
            )
        for field_name in spec.text_fields:
            await client.create_payload_index(
                collection_name=spec.name,
                field_name=field_name,
                field_schema=models.TextIndexParams(
                    type=models.TextIndexType.TEXT,
                    tokenizer=models.TokenizerType.WORD,
                    lowercase=True,
                ),
            )
        created.append(spec.name)
    return created


class QdrantVectorStore:
    """
    Vector store operations against Qdrant.

    Holds no client of its own: the ConnectionManager hands out the live
    client per call, so reconnects are transparent to callers.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        operation_timeout_s: float = 15.0,
        upsert_policy: RetryPolicy | None = None,
    ) -> None:
        """
        Initialize store.

        Args:
            connection: Connection lifecycle owner
            operation_timeout_s: Timeout applied to each store call
            upsert_policy: Retry policy for upserts (default 3 attempts, 1s base)
        """
        self._connection = connection
        self._operation_timeout_s = operation_timeout_s
        self._upsert_policy = upsert_policy or RetryPolicy(
            max_attempts=3,
            base_delay_s=1.0,
            give_up_on=(ValidationError,),
        )

    @property
    def connection(self) -> ConnectionManager:
        return self._connection

    async def _call(
        self,
        operation: str,
        collection: str | None,
        fn: Callable[[AsyncQdrantClient], Awaitable[T]],
    ) -> T:
        client = await self._connection.ensure_connected()
        try:
            return await asyncio.wait_for(fn(client), timeout=self._operation_timeout_s)
        except asyncio.TimeoutError as e:
            logger.warning(
                f"{__name__}:{operation} - Timed out after {self._operation_timeout_s}s on '{collection}'"
            )
            raise OperationTimeoutError(
                f"Vector store {operation} timed out",
                operation=operation,
                timeout_s=self._operation_timeout_s,
            ) from e
        except _TRANSPORT_ERRORS as e:
            self._connection.mark_disconnected(e)
            logger.error(f"{__name__}:{operation} - Transport failure: {type(e).__name__}: {e}")
            raise ConnectivityError(
                f"Vector store {operation} failed: connection lost",
                state=self._connection.state.value,
            ) from e
        except RagPipelineError:
            raise
        except UnexpectedResponse as e:
            logger.error(f"{__name__}:{operation} - Unexpected response {e.status_code} on '{collection}'")
            raise VectorStoreError(
                f"Vector store {operation} failed",
                operation=operation,
                collection=collection,
                details={"status_code": e.status_code},
            ) from e
        except Exception as e:
            logger.error(f"{__name__}:{operation} - {type(e).__name__}: {e}")
            raise VectorStoreError(
                f"Vector store {operation} failed: {e}",
                operation=operation,
                collection=collection,
            ) from e

    async def search(
        self,
        collection: str,
        query_vector: list[float],
        query_filter: models.Filter | None = None,
        limit: int = 10,
        threshold: float | None = None,
    ) -> list[ScoredChunk]:
        """
        Similarity search ranked by score, hits below threshold dropped.

        Args:
            collection: Collection name
            query_vector: Query embedding
            query_filter: Payload filter (None for no filter)
            limit: Maximum hits
            threshold: Minimum similarity

        Returns:
            list[ScoredChunk]: Hits sorted by descending score
        """
        if not query_vector:
            raise ValidationError("Query vector is empty", field="query_vector")

        async def _query(client: AsyncQdrantClient) -> Any:
            return await client.query_points(
                collection_name=collection,
                query=query_vector,
                query_filter=query_filter,
                limit=limit,
                score_threshold=threshold,
                with_payload=True,
            )

        response = await self._call("search", collection, _query)
        hits = [
            ScoredChunk(id=point.id, score=float(point.score), payload=point.payload or {})
            for point in response.points
        ]
        if threshold is not None:
            hits = [hit for hit in hits if hit.score >= threshold]
        hits.sort(key=lambda hit: hit.score, reverse=True)

        logger.debug(f"{__name__}:search - {len(hits)} hits from '{collection}' (limit={limit})")
        return hits

    async def scroll(
        self,
        collection: str,
        scroll_filter: models.Filter | None = None,
        limit: int = 100,
        offset: str | int | None = None,
    ) -> tuple[list[StoredPoint], str | int | None]:
        """One page of points matching a filter, with the next offset."""

        async def _scroll(client: AsyncQdrantClient) -> Any:
            return await client.scroll(
                collection_name=collection,
                scroll_filter=scroll_filter,
                limit=limit,
                offset=offset,
                with_payload=True,
                with_vectors=False,
            )

        points, next_offset = await self._call("scroll", collection, _scroll)
        return [StoredPoint(id=p.id, payload=p.payload or {}) for p in points], next_offset

    async def scroll_all(
        self,
        collection: str,
        scroll_filter: models.Filter | None = None,
        page_size: int = 256,
        max_points: int | None = None,
    ) -> list[StoredPoint]:
        """
        Collect every point matching a filter by paging through scroll.

        Args:
            collection: Collection name
            scroll_filter: Payload filter
            page_size: Points per page
            max_points: Optional upper bound on collected points

        Returns:
            list[StoredPoint]: Points in store order
        """
        collected: list[StoredPoint] = []
        offset: str | int | None = None
        while True:
            page, offset = await self.scroll(collection, scroll_filter, limit=page_size, offset=offset)
            collected.extend(page)
            if offset is None or not page:
                break
            if max_points is not None and len(collected) >= max_points:
                break
        if max_points is not None:
            collected = collected[:max_points]
        return collected

    async def count(self, collection: str, count_filter: models.Filter | None = None) -> int:
        async def _count(client: AsyncQdrantClient) -> Any:
            return await client.count(collection_name=collection, count_filter=count_filter, exact=True)

        result = await self._call("count", collection, _count)
        return int(result.count)

    async def upsert(self, collection: str, records: list[ChunkRecord]) -> int:
        """
        Insert or replace chunk points, retried with backoff.

        Args:
            collection: Target collection
            records: Chunk records (ids default to document/chunk derived UUIDs)

        Returns:
            int: Number of points written
        """
        if not records:
            return 0
        for record in records:
            if not record.vector:
                raise ValidationError(
                    "Chunk record has no vector",
                    field="vector",
                    details={"document_id": record.document_id, "chunk_index": record.chunk_index},
                )

        points = [
            models.PointStruct(id=record.point_id(), vector=record.vector, payload=record.to_payload())
            for record in records
        ]

        async def _upsert(client: AsyncQdrantClient) -> Any:
            return await client.upsert(collection_name=collection, points=points, wait=True)

        def _on_retry(attempt_number: int, exc: BaseException, delay: float) -> None:
            logger.warning(
                f"{__name__}:upsert - Attempt {attempt_number} on '{collection}' failed "
                f"({type(exc).__name__}); retrying in {delay:.1f}s"
            )

        await call_with_retry(
            self._call,
            "upsert",
            collection,
            _upsert,
            policy=self._upsert_policy,
            on_retry=_on_retry,
        )
        logger.info(f"{__name__}:upsert - Wrote {len(points)} points to '{collection}'")
        return len(points)

    async def delete(self, collection: str, delete_filter: models.Filter) -> None:
        """Delete every point matching a (non-empty) filter."""
        if delete_filter is None:
            raise ValidationError("Refusing to delete without a filter", field="delete_filter")

        async def _delete(client: AsyncQdrantClient) -> Any:
            return await client.delete(
                collection_name=collection,
                points_selector=models.FilterSelector(filter=delete_filter),
                wait=True,
            )

        await self._call("delete", collection, _delete)
        logger.info(f"{__name__}:delete - Deleted matching points from '{collection}'")

    async def collection_points(self, collection: str) -> int:
        async def _info(client: AsyncQdrantClient) -> Any:
            return await client.get_collection(collection_name=collection)

        info = await self._call("collection_info", collection, _info)
        return int(info.points_count or 0)

    async def close(self) -> None:
        await self._connection.close()
