"""
Vector store connection lifecycle.

State machine for the Qdrant client connection:

    UNINITIALIZED -> INITIALIZING -> CONNECTED
    CONNECTED -> DISCONNECTED -> INITIALIZING (on failure)
    INITIALIZING -> UNAVAILABLE (probe retries exhausted)
    UNAVAILABLE -> INITIALIZING (cool-down elapsed, or health check)

Initialization is lazy and shared: concurrent callers of
``ensure_connected()`` await one in-flight task. An unavailable store
fails fast until one health-check interval has passed since the failure;
the next call after that re-initializes. Protocol-level failures
(SSL, wrong version number) tear the client down completely; other
failures re-probe the existing client.

Dependencies: qdrant_client, tenacity (via core.retry)
System role: Process-wide vector store connection owner
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from qdrant_client import AsyncQdrantClient

from rag_pipeline.configs.vector_store import VectorStoreSettings
from rag_pipeline.core.exceptions import ConnectivityError, is_protocol_failure
from rag_pipeline.core.retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], AsyncQdrantClient]
ConnectedHook = Callable[[AsyncQdrantClient], Awaitable[None]]


class ConnectionState(str, Enum):
    """Connection lifecycle states."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    UNAVAILABLE = "unavailable"


def qdrant_client_factory(settings: VectorStoreSettings) -> ClientFactory:
    """Build a factory creating AsyncQdrantClient instances from settings."""

    def _factory() -> AsyncQdrantClient:
        return AsyncQdrantClient(
            url=settings.url,
            api_key=settings.api_key,
            prefer_grpc=settings.prefer_grpc,
            timeout=int(settings.timeout_s),
        )

    return _factory


class ConnectionManager:
    """
    Owns the vector store client and its lifecycle.

    Every store operation goes through ``ensure_connected()``, which
    triggers lazy initialization, joins an in-flight one, or fails fast
    when the store has been declared unavailable.
    """

    def __init__(
        self,
        client_factory: ClientFactory,
        max_init_attempts: int = 3,
        backoff_base_s: float = 2.0,
        health_check_interval_s: float = 30.0,
        on_connected: ConnectedHook | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        auto_health_checks: bool = False,
    ) -> None:
        """
        Initialize connection manager.

        Args:
            client_factory: Creates a fresh client (called again after teardown)
            max_init_attempts: Probe attempts before UNAVAILABLE
            backoff_base_s: Probe backoff base (base * 2^attempt)
            health_check_interval_s: Seconds between background probes
            on_connected: Hook run after a successful probe (collection bootstrap)
            sleep: Sleep coroutine (injectable for tests)
            clock: Monotonic clock for the unavailable cool-down
            auto_health_checks: Start the periodic health check on first use
        """
        self._client_factory = client_factory
        self._policy = RetryPolicy(max_attempts=max_init_attempts, base_delay_s=backoff_base_s)
        self._health_check_interval_s = health_check_interval_s
        self._on_connected = on_connected
        self._sleep = sleep
        self._clock = clock
        self._auto_health_checks = auto_health_checks

        self._client: AsyncQdrantClient | None = None
        self._state = ConnectionState.UNINITIALIZED
        self._init_task: asyncio.Task | None = None
        self._health_task: asyncio.Task | None = None
        self._last_error: str | None = None
        self._unavailable_since: float | None = None
        self._init_count = 0

    @classmethod
    def from_settings(
        cls,
        settings: VectorStoreSettings,
        on_connected: ConnectedHook | None = None,
    ) -> "ConnectionManager":
        return cls(
            client_factory=qdrant_client_factory(settings),
            max_init_attempts=settings.max_init_attempts,
            backoff_base_s=settings.init_backoff_base_s,
            health_check_interval_s=settings.health_check_interval_s,
            on_connected=on_connected,
            auto_health_checks=True,
        )

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def init_count(self) -> int:
        """Number of initialization runs started (not attempts)."""
        return self._init_count

    async def ensure_connected(self) -> AsyncQdrantClient:
        """
        Guard for every store operation.

        Returns:
            AsyncQdrantClient: Connected client

        Raises:
            ConnectivityError: Store is unavailable or initialization failed
        """
        if self._state is ConnectionState.CONNECTED and self._client is not None:
            return self._client
        if self._auto_health_checks:
            self.start_health_checks()
        if self._state is ConnectionState.UNAVAILABLE:
            if not self._cooldown_elapsed():
                raise ConnectivityError(
                    "Vector store unavailable",
                    state=self._state.value,
                    details={"last_error": self._last_error},
                )
            logger.info(f"{__name__}:ensure_connected - Cool-down elapsed, retrying initialization")
        await self.initialize()
        if self._client is None:
            raise ConnectivityError("Vector store client missing after init", state=self._state.value)
        return self._client

    def _cooldown_elapsed(self) -> bool:
        if self._unavailable_since is None:
            return True
        return self._clock() - self._unavailable_since >= self._health_check_interval_s

    async def initialize(self) -> None:
        """
        Start (or join) initialization.

        Concurrent callers share one task; shielding keeps a cancelled
        caller from cancelling initialization for everyone else.
        """
        if self._state is ConnectionState.CONNECTED:
            return
        if self._init_task is None or self._init_task.done():
            self._init_count += 1
            self._init_task = asyncio.create_task(self._connect())
        await asyncio.shield(self._init_task)

    async def _connect(self) -> None:
        self._state = ConnectionState.INITIALIZING
        logger.info(f"{__name__}:_connect - Initializing vector store connection")

        def _on_retry(attempt_number: int, exc: BaseException, delay: float) -> None:
            logger.warning(
                f"{__name__}:_connect - Probe attempt {attempt_number} failed "
                f"({type(exc).__name__}: {exc}); retrying in {delay:.1f}s"
            )

        try:
            await call_with_retry(
                self._probe_once,
                policy=self._policy,
                on_retry=_on_retry,
                sleep=self._sleep,
            )
        except Exception as e:
            self._state = ConnectionState.UNAVAILABLE
            self._unavailable_since = self._clock()
            self._last_error = f"{type(e).__name__}: {e}"
            logger.error(
                f"{__name__}:_connect - Vector store unavailable after "
                f"{self._policy.max_attempts} attempts: {self._last_error}"
            )
            raise ConnectivityError(
                "Vector store initialization failed",
                state=self._state.value,
                details={"last_error": self._last_error},
            ) from e

        self._state = ConnectionState.CONNECTED
        self._last_error = None
        self._unavailable_since = None
        logger.info(f"{__name__}:_connect - Vector store connected")

    async def _probe_once(self) -> None:
        if self._client is None:
            self._client = self._client_factory()
        try:
            await self._client.get_collections()
        except Exception as e:
            if is_protocol_failure(e):
                logger.warning(f"{__name__}:_probe_once - Protocol failure, tearing client down")
                await self._teardown()
            raise
        if self._on_connected is not None:
            await self._on_connected(self._client)

    async def _teardown(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.close()
        except Exception as e:
            logger.warning(f"{__name__}:_teardown - Error closing client: {type(e).__name__}: {e}")

    def mark_disconnected(self, exc: BaseException | None = None) -> None:
        """
        Record a transport failure seen by a store operation.

        The next ``ensure_connected()`` call re-initializes.
        """
        if self._state is ConnectionState.CONNECTED:
            self._state = ConnectionState.DISCONNECTED
            self._last_error = f"{type(exc).__name__}: {exc}" if exc else None
            logger.warning(f"{__name__}:mark_disconnected - Connection lost: {self._last_error}")

    async def check_health(self) -> bool:
        """
        Probe the connection once and repair it if needed.

        Returns:
            bool: True when connected after the check
        """
        if self._state in (ConnectionState.UNINITIALIZED, ConnectionState.INITIALIZING):
            return False

        if self._state is ConnectionState.CONNECTED and self._client is not None:
            try:
                await self._client.get_collections()
                return True
            except Exception as e:
                self._state = ConnectionState.DISCONNECTED
                self._last_error = f"{type(e).__name__}: {e}"
                if is_protocol_failure(e):
                    logger.warning(f"{__name__}:check_health - Protocol failure, full teardown")
                    await self._teardown()
                else:
                    logger.warning(f"{__name__}:check_health - Probe failed, soft reconnect: {e}")

        # DISCONNECTED or UNAVAILABLE: try to recover
        try:
            await self.initialize()
        except ConnectivityError:
            return False
        return self.is_connected

    def start_health_checks(self) -> None:
        """Start the periodic health check task (idempotent)."""
        if self._health_task is not None and not self._health_task.done():
            return
        self._health_task = asyncio.create_task(self._health_loop())

    async def _health_loop(self) -> None:
        while True:
            await self._sleep(self._health_check_interval_s)
            try:
                healthy = await self.check_health()
                logger.debug(f"{__name__}:_health_loop - healthy={healthy} state={self._state.value}")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"{__name__}:_health_loop - Health check error: {type(e).__name__}: {e}")

    async def close(self) -> None:
        """Stop health checks and close the client."""
        if self._health_task is not None:
            self._health_task.cancel()
            try:
                await self._health_task
            except asyncio.CancelledError:
                pass
            self._health_task = None
        await self._teardown()
        self._state = ConnectionState.UNINITIALIZED
        self._unavailable_since = None
