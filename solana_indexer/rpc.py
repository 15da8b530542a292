import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Union

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed

from solana_indexer import metrics
from solana_indexer.config import Environment

logger = logging.getLogger(__name__)

ENDPOINTS = {
    Environment.MAINNET: "https://api.mainnet-beta.solana.com",
    Environment.DEVNET: "https://api.devnet.solana.com",
    Environment.TESTNET: "https://api.testnet.solana.com",
    Environment.LOCALNET: "http://localhost:8899",
}

# Reconnect backoff, milliseconds
INITIAL_BACKOFF = 1000
MAX_BACKOFF = 30000


def backoff_delay(attempt: int) -> int:
    """Delay in milliseconds before retry number ``attempt`` (1-based)."""
    return min(INITIAL_BACKOFF * (2 ** attempt), MAX_BACKOFF)


class BaseRPCProvider(ABC):
    """Owns one RPC client handle and the endpoint it talks to."""

    def __init__(self, endpoint: str):
        self.endpoint = endpoint
        self.connection = self._create_connection()

    @abstractmethod
    def _create_connection(self) -> Any:
        """Create a new client handle for self.endpoint."""
        pass

    @abstractmethod
    async def _health_check(self, connection: Any) -> None:
        """Issue a lightweight RPC call; raise if the node is unreachable."""
        pass

    def get_connection(self) -> Any:
        return self.connection

    def get_endpoint(self) -> str:
        return self.endpoint

    async def ensure_connected(self) -> None:
        """
        Block until the node answers a health check.

        Each failure recreates the client handle and sleeps
        min(1000 * 2^attempt, 30000) ms before the next check. There is no
        attempt ceiling: this returns only once the node is reachable.
        """
        attempt = 0
        while True:
            try:
                await self._health_check(self.connection)
                if attempt:
                    logger.info(f"RPC {self.endpoint} reachable again after {attempt} attempt(s)")
                return
            except Exception as e:
                attempt += 1
                delay = backoff_delay(attempt)
                logger.warning(
                    f"RPC {self.endpoint} health check failed (attempt {attempt}): {e}. Retrying in {delay}ms"
                )
                metrics.rpc_reconnects.inc()

            try:
                await self.reconnect()
            except Exception as e:
                logger.debug(f"Recreating RPC client failed, keeping previous handle: {e}")

            await asyncio.sleep(delay / 1000)

    async def reconnect(self) -> None:
        """Replace the client handle with a fresh one."""
        old = self.connection
        self.connection = self._create_connection()
        await self._close_connection(old)

    async def close(self) -> None:
        await self._close_connection(self.connection)

    async def _close_connection(self, connection: Any) -> None:
        close = getattr(connection, "close", None)
        if close is None:
            return
        try:
            result = close()
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.debug(f"Error closing RPC client for {self.endpoint}: {e}")


class SolanaRPCProvider(BaseRPCProvider):
    """RPC provider backed by solana-py's AsyncClient."""

    def __init__(self, endpoint: str, commitment=Confirmed, timeout: float = 10):
        self.commitment = commitment
        self.timeout = timeout
        super().__init__(endpoint)

    def _create_connection(self) -> AsyncClient:
        return AsyncClient(self.endpoint, commitment=self.commitment, timeout=self.timeout)

    async def _health_check(self, connection: AsyncClient) -> None:
        await connection.get_version()


def resolve_endpoint(env: Union[Environment, str], custom_url: Optional[str] = None) -> str:
    """The custom URL wins over the environment's well-known endpoint."""
    if custom_url:
        return custom_url
    return ENDPOINTS[Environment(env)]


def create_rpc_provider(env: Union[Environment, str], custom_url: Optional[str] = None) -> SolanaRPCProvider:
    return SolanaRPCProvider(resolve_endpoint(env, custom_url))
