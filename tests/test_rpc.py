"""
Tests for the RPC provider
"""
from unittest.mock import AsyncMock, call, patch

import pytest
from solana.rpc.async_api import AsyncClient

from solana_indexer.config import Environment
from solana_indexer.rpc import (
    ENDPOINTS,
    SolanaRPCProvider,
    backoff_delay,
    create_rpc_provider,
    resolve_endpoint,
)

from conftest import FakeConnection, FakeRPCProvider


class TestEndpoints:
    """Test endpoint selection"""

    @pytest.mark.parametrize("env,url", [
        ("mainnet", "https://api.mainnet-beta.solana.com"),
        ("devnet", "https://api.devnet.solana.com"),
        ("testnet", "https://api.testnet.solana.com"),
        ("localnet", "http://localhost:8899"),
    ])
    def test_well_known_endpoints(self, env, url):
        assert resolve_endpoint(env) == url
        assert ENDPOINTS[Environment(env)] == url

    def test_custom_url_always_wins(self):
        for env in Environment:
            assert resolve_endpoint(env, "https://my-node.example.com") == "https://my-node.example.com"

    def test_create_rpc_provider(self):
        provider = create_rpc_provider(Environment.DEVNET)

        assert isinstance(provider, SolanaRPCProvider)
        assert provider.get_endpoint() == "https://api.devnet.solana.com"
        assert isinstance(provider.get_connection(), AsyncClient)

    def test_connection_is_stable(self):
        provider = create_rpc_provider("localnet", "http://127.0.0.1:8899")
        assert provider.get_connection() is provider.get_connection()


class TestBackoff:
    """Test reconnect backoff delays"""

    def test_backoff_sequence(self):
        assert [backoff_delay(n) for n in range(1, 7)] == [2000, 4000, 8000, 16000, 30000, 30000]

    def test_backoff_is_capped(self):
        assert backoff_delay(50) == 30000


class TestEnsureConnected:
    """Test the blocking health-check loop"""

    @pytest.mark.asyncio
    async def test_returns_immediately_when_healthy(self):
        provider = FakeRPCProvider(FakeConnection())

        with patch("solana_indexer.rpc.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await provider.ensure_connected()

        mock_sleep.assert_not_called()
        assert provider.created == 1

    @pytest.mark.asyncio
    async def test_two_failures_then_success(self):
        connection = FakeConnection()
        connection.version_failures = 2
        provider = FakeRPCProvider(connection)

        with patch("solana_indexer.rpc.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await provider.ensure_connected()

        assert mock_sleep.await_args_list == [call(2.0), call(4.0)]
        # initial handle plus one recreation per failure
        assert provider.created == 3

    @pytest.mark.asyncio
    async def test_recreation_errors_are_ignored(self):
        connection = FakeConnection()
        connection.version_failures = 1
        provider = FakeRPCProvider(connection)
        provider.reconnect = AsyncMock(side_effect=RuntimeError("cannot build client"))

        with patch("solana_indexer.rpc.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await provider.ensure_connected()

        provider.reconnect.assert_awaited_once()
        mock_sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_reconnect_closes_previous_handle(self):
        old = FakeConnection()
        provider = FakeRPCProvider(old)
        new = FakeConnection()
        provider._template = new

        await provider.reconnect()

        assert provider.get_connection() is new
        assert old.closed is True


class TestSolanaRPCProvider:
    """Test the solana-py backed provider"""

    @pytest.mark.asyncio
    async def test_health_check_uses_get_version(self):
        provider = SolanaRPCProvider("http://localhost:8899")
        mock_client = AsyncMock()
        provider.connection = mock_client

        await provider.ensure_connected()

        mock_client.get_version.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close(self):
        provider = SolanaRPCProvider("http://localhost:8899")
        mock_client = AsyncMock()
        provider.connection = mock_client

        await provider.close()

        mock_client.close.assert_awaited_once()
