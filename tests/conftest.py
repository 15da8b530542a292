"""Pytest configuration and shared fixtures."""
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest
from solders.signature import Signature

from solana_indexer.rpc import BaseRPCProvider

WSOL = "So11111111111111111111111111111111111111112"
USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"
TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
SYSTEM_PROGRAM = "11111111111111111111111111111111"


def make_signature(n: int) -> Signature:
    return Signature(bytes([n]) * 64)


def sig_info(n: int, slot: int, block_time: Optional[int]):
    """Entry as returned by getSignaturesForAddress."""
    return SimpleNamespace(signature=make_signature(n), slot=slot, block_time=block_time, err=None)


def tx_response(fee: Optional[int] = 5000, err=None, account_keys: Optional[List[str]] = None, meta: bool = True):
    keys = [SimpleNamespace(pubkey=key) for key in (account_keys or [WSOL, USDC])]
    return SimpleNamespace(
        slot=0,
        block_time=None,
        transaction=SimpleNamespace(
            meta=SimpleNamespace(err=err, fee=fee) if meta else None,
            transaction=SimpleNamespace(message=SimpleNamespace(account_keys=keys)),
        ),
    )


def account_info(lamports: int = 1_000_000, owner: str = SYSTEM_PROGRAM, data: bytes = b"\x01\x02"):
    return SimpleNamespace(lamports=lamports, owner=owner, executable=False, rent_epoch=361, data=data)


class FakeConnection:
    """Stands in for solana-py's AsyncClient."""

    def __init__(self, signatures=None, transactions=None, accounts=None, slot: int = 250_000_000):
        # address -> signature infos (newest first) or an exception
        self.signatures: Dict[str, object] = signatures or {}
        # signature string -> tx_response(), None or an exception
        self.transactions: Dict[str, object] = transactions or {}
        # address -> account_info(), None or an exception
        self.accounts: Dict[str, object] = accounts or {}
        self.slot = slot
        self.signature_calls: List[dict] = []
        self.transaction_calls: List[str] = []
        self.version_failures = 0
        self.closed = False

    async def get_signatures_for_address(self, account, before=None, until=None, limit=None, commitment=None):
        self.signature_calls.append({
            "address": str(account),
            "before": str(before) if before is not None else None,
            "limit": limit,
        })
        value = self.signatures.get(str(account), [])
        if isinstance(value, Exception):
            raise value
        return SimpleNamespace(value=list(value)[:limit] if limit else list(value))

    async def get_transaction(self, tx_sig, encoding="json", commitment=None, max_supported_transaction_version=None):
        key = str(tx_sig)
        self.transaction_calls.append(key)
        value = self.transactions.get(key, tx_response())
        if isinstance(value, Exception):
            raise value
        return SimpleNamespace(value=value)

    async def get_account_info(self, pubkey, commitment=None, encoding="base64", data_slice=None):
        value = self.accounts.get(str(pubkey))
        if isinstance(value, Exception):
            raise value
        return SimpleNamespace(value=value)

    async def get_slot(self, commitment=None):
        return SimpleNamespace(value=self.slot)

    async def get_version(self):
        if self.version_failures > 0:
            self.version_failures -= 1
            raise ConnectionError("node unreachable")
        return SimpleNamespace(value={"solana-core": "1.18.0"})

    async def close(self):
        self.closed = True


class FakeRPCProvider(BaseRPCProvider):
    """Provider whose handle is a FakeConnection."""

    def __init__(self, connection: Optional[FakeConnection] = None, endpoint: str = "http://fake-rpc:8899"):
        self._template = connection or FakeConnection()
        self.created = 0
        super().__init__(endpoint)

    def _create_connection(self):
        self.created += 1
        return self._template

    async def _health_check(self, connection):
        await connection.get_version()


@pytest.fixture
def connection():
    return FakeConnection()


@pytest.fixture
def provider(connection):
    return FakeRPCProvider(connection)
