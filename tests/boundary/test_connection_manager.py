"""
Test suite for ConnectionManager.

Tests lazy shared initialization, bounded probe retries, protocol-failure
teardown, reconnection after a transport failure and health checks.

System role: Verification of vector store connection lifecycle
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from rag_pipeline.boundary.vdb.connection_manager import ConnectionManager, ConnectionState
from rag_pipeline.core.exceptions import ConnectivityError


def _client(**overrides) -> MagicMock:
    client = MagicMock()
    client.get_collections = AsyncMock(return_value=MagicMock(collections=[]))
    client.close = AsyncMock(return_value=None)
    for name, value in overrides.items():
        setattr(client, name, value)
    return client


class TestEnsureConnected:
    """Test suite for lazy initialization."""

    @pytest.mark.asyncio
    async def test_concurrent_callers_should_share_one_initialization(self, no_sleep: AsyncMock) -> None:
        """Test many concurrent first operations run exactly one init."""
        # Arrange
        client = _client()

        async def _slow_probe():
            await asyncio.sleep(0.01)

        client.get_collections = AsyncMock(side_effect=_slow_probe)
        factory = MagicMock(return_value=client)
        manager = ConnectionManager(factory, sleep=no_sleep)

        # Act
        results = await asyncio.gather(*(manager.ensure_connected() for _ in range(5)))

        # Assert
        assert all(result is client for result in results)
        assert manager.init_count == 1
        factory.assert_called_once()
        assert client.get_collections.await_count == 1
        assert manager.state is ConnectionState.CONNECTED

    @pytest.mark.asyncio
    async def test_should_run_on_connected_hook(self, no_sleep: AsyncMock) -> None:
        """Test the bootstrap hook receives the connected client."""
        # Arrange
        client = _client()
        hook = AsyncMock()
        manager = ConnectionManager(MagicMock(return_value=client), on_connected=hook, sleep=no_sleep)

        # Act
        await manager.ensure_connected()

        # Assert
        hook.assert_awaited_once_with(client)

    @pytest.mark.asyncio
    async def test_exhausted_probes_should_mark_unavailable_and_fail_fast(self, no_sleep: AsyncMock) -> None:
        """Test retry budget, backoff delays and fail-fast afterwards."""
        # Arrange
        client = _client(get_collections=AsyncMock(side_effect=ConnectionError("connection refused")))
        factory = MagicMock(return_value=client)
        manager = ConnectionManager(factory, max_init_attempts=3, backoff_base_s=2.0, sleep=no_sleep)

        # Act & Assert
        with pytest.raises(ConnectivityError):
            await manager.ensure_connected()

        assert manager.state is ConnectionState.UNAVAILABLE
        assert client.get_collections.await_count == 3
        assert [call.args[0] for call in no_sleep.await_args_list] == [2.0, 4.0]
        assert "connection refused" in manager.last_error
        factory.assert_called_once()

        with pytest.raises(ConnectivityError, match="unavailable"):
            await manager.ensure_connected()
        assert client.get_collections.await_count == 3

    @pytest.mark.asyncio
    async def test_protocol_failure_should_recreate_client(self, no_sleep: AsyncMock) -> None:
        """Test an SSL version mismatch tears the client down before retrying."""
        # Arrange
        broken = _client(get_collections=AsyncMock(side_effect=OSError("[SSL] wrong version number")))
        healthy = _client()
        factory = MagicMock(side_effect=[broken, healthy])
        manager = ConnectionManager(factory, sleep=no_sleep)

        # Act
        client = await manager.ensure_connected()

        # Assert
        assert client is healthy
        assert factory.call_count == 2
        broken.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_soft_failure_should_reuse_client(self, no_sleep: AsyncMock) -> None:
        """Test a non-protocol probe failure retries with the same client."""
        # Arrange
        client = _client(get_collections=AsyncMock(side_effect=[TimeoutError("slow"), None]))
        factory = MagicMock(return_value=client)
        manager = ConnectionManager(factory, sleep=no_sleep)

        # Act
        await manager.ensure_connected()

        # Assert
        factory.assert_called_once()
        client.close.assert_not_awaited()
        assert manager.is_connected


class TestReconnect:
    """Test suite for disconnection handling and health checks."""

    @pytest.mark.asyncio
    async def test_mark_disconnected_should_trigger_reinitialization(self, no_sleep: AsyncMock) -> None:
        """Test the next operation after a transport failure re-initializes."""
        # Arrange
        client = _client()
        manager = ConnectionManager(MagicMock(return_value=client), sleep=no_sleep)
        await manager.ensure_connected()

        # Act
        manager.mark_disconnected(ConnectionError("reset by peer"))
        state_after_failure = manager.state
        await manager.ensure_connected()

        # Assert
        assert state_after_failure is ConnectionState.DISCONNECTED
        assert manager.init_count == 2
        assert manager.is_connected

    @pytest.mark.asyncio
    async def test_mark_disconnected_should_ignore_non_connected_states(self, no_sleep: AsyncMock) -> None:
        """Test marking before initialization leaves the state alone."""
        manager = ConnectionManager(MagicMock(return_value=_client()), sleep=no_sleep)
        manager.mark_disconnected(ConnectionError("x"))
        assert manager.state is ConnectionState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_check_health_should_report_uninitialized_as_unhealthy(self, no_sleep: AsyncMock) -> None:
        """Test health check does not trigger initialization."""
        manager = ConnectionManager(MagicMock(return_value=_client()), sleep=no_sleep)
        assert await manager.check_health() is False
        assert manager.init_count == 0

    @pytest.mark.asyncio
    async def test_check_health_should_repair_failed_probe(self, no_sleep: AsyncMock) -> None:
        """Test a failed health probe leads to a soft reconnect."""
        # Arrange
        client = _client(get_collections=AsyncMock(side_effect=[None, RuntimeError("boom"), None]))
        manager = ConnectionManager(MagicMock(return_value=client), sleep=no_sleep)
        await manager.ensure_connected()

        # Act
        healthy = await manager.check_health()

        # Assert
        assert healthy is True
        assert manager.init_count == 2

    @pytest.mark.asyncio
    async def test_check_health_should_pass_for_live_connection(self, no_sleep: AsyncMock) -> None:
        """Test a healthy connection is probed once and kept."""
        manager = ConnectionManager(MagicMock(return_value=_client()), sleep=no_sleep)
        await manager.ensure_connected()
        assert await manager.check_health() is True
        assert manager.init_count == 1

    @pytest.mark.asyncio
    async def test_close_should_release_client(self, no_sleep: AsyncMock) -> None:
        """Test close tears the client down and resets state."""
        # Arrange
        client = _client()
        manager = ConnectionManager(MagicMock(return_value=client), sleep=no_sleep)
        await manager.ensure_connected()

        # Act
        await manager.close()

        # Assert
        client.close.assert_awaited_once()
        assert manager.state is ConnectionState.UNINITIALIZED


class TestRecovery:
    """Test suite for leaving UNAVAILABLE and for the periodic health check."""

    @pytest.mark.asyncio
    async def test_unavailable_store_should_reconnect_after_cooldown(self, no_sleep: AsyncMock) -> None:
        """Test the store is re-probed once the cool-down has elapsed."""
        # Arrange
        now = [1000.0]
        client = _client(
            get_collections=AsyncMock(
                side_effect=[
                    ConnectionError("refused"),
                    ConnectionError("refused"),
                    ConnectionError("refused"),
                    MagicMock(collections=[]),
                ]
            )
        )
        manager = ConnectionManager(
            MagicMock(return_value=client),
            max_init_attempts=3,
            health_check_interval_s=30.0,
            sleep=no_sleep,
            clock=lambda: now[0],
        )
        with pytest.raises(ConnectivityError):
            await manager.ensure_connected()

        # Act & Assert: still inside the cool-down
        now[0] += 10.0
        with pytest.raises(ConnectivityError, match="unavailable"):
            await manager.ensure_connected()
        assert client.get_collections.await_count == 3

        # Act & Assert: cool-down elapsed, store is back
        now[0] += 25.0
        result = await manager.ensure_connected()
        assert result is client
        assert manager.state is ConnectionState.CONNECTED
        assert manager.init_count == 2
        assert manager.last_error is None

    @pytest.mark.asyncio
    async def test_auto_health_checks_should_probe_periodically(self) -> None:
        """Test the health loop starts on first use and probes the live client."""
        # Arrange
        client = _client()
        release = asyncio.Event()
        delays: list[float] = []

        async def _sleep(delay: float) -> None:
            delays.append(delay)
            if len(delays) == 1:
                await release.wait()
            else:
                await asyncio.Event().wait()

        manager = ConnectionManager(
            MagicMock(return_value=client),
            health_check_interval_s=30.0,
            sleep=_sleep,
            auto_health_checks=True,
        )

        # Act
        await manager.ensure_connected()
        release.set()
        for _ in range(20):
            if len(delays) == 2:
                break
            await asyncio.sleep(0)

        # Assert
        assert delays == [30.0, 30.0]
        assert client.get_collections.await_count == 2
        assert manager.state is ConnectionState.CONNECTED
        await manager.close()

    @pytest.mark.asyncio
    async def test_from_settings_should_enable_health_checks(self) -> None:
        """Test container-built managers schedule the health loop."""
        from rag_pipeline.configs.vector_store import VectorStoreSettings

        manager = ConnectionManager.from_settings(VectorStoreSettings(_env_file=None))
        assert manager._auto_health_checks is True
