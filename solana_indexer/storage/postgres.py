"""
PostgreSQL storage adapter
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import asyncpg
import orjson as json

from solana_indexer.exceptions import InvalidFilterError
from solana_indexer.models import Filter, IndexedAccount, IndexedData, IndexedTransaction, record_to_dict
from solana_indexer.storage.base import StorageAdapter, validate_filter

logger = logging.getLogger(__name__)

TABLE_COLUMNS = {
    "transactions": (
        "signature", "slot", "block_time", "accounts", "program_id", "data", "success", "fee", "timestamp",
    ),
    "accounts": (
        "address", "lamports", "owner", "executable", "rent_epoch", "data", "slot", "timestamp",
    ),
}


def build_select(filter: Optional[Filter]) -> Tuple[str, List[Any]]:
    """
    SELECT statement and arguments for an equality filter.

    The reserved ``table`` key picks the table (default ``transactions``);
    every other key must be a column of that table.
    """
    where = validate_filter(filter)
    table = where.pop("table", None) or "transactions"
    if table not in TABLE_COLUMNS:
        raise InvalidFilterError(f"Unknown table {table!r}")

    unknown = [key for key in where if key not in TABLE_COLUMNS[table]]
    if unknown:
        raise InvalidFilterError(f"Unknown columns for {table}: {unknown}")

    if not where:
        return f"SELECT * FROM {table}", []

    conditions = []
    values = []
    for key, value in where.items():
        if value is None:
            conditions.append(f"{key} IS NULL")
            continue
        values.append(value)
        conditions.append(f"{key} = ${len(values)}")
    return f"SELECT * FROM {table} WHERE {' AND '.join(conditions)}", values


class PostgresStorage(StorageAdapter):
    """Upserts transactions by signature and accounts by address."""

    def __init__(self, dsn: str, min_size: int = 1, max_size: int = 5):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.pool = None

    async def connect(self) -> None:
        self.pool = await asyncpg.create_pool(dsn=self.dsn, min_size=self.min_size, max_size=self.max_size)
        await self.create_tables()
        logger.info("PostgreSQL storage initialised")

    async def disconnect(self) -> None:
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("PostgreSQL connection pool closed")

    async def create_tables(self) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS transactions (
                    signature TEXT PRIMARY KEY,
                    slot BIGINT NOT NULL,
                    block_time BIGINT,
                    accounts TEXT[],
                    program_id TEXT,
                    data JSONB,
                    success BOOLEAN,
                    fee BIGINT,
                    timestamp TIMESTAMPTZ NOT NULL
                )
            """)

            await conn.execute("""
                CREATE TABLE IF NOT EXISTS accounts (
                    address TEXT PRIMARY KEY,
                    lamports BIGINT NOT NULL,
                    owner TEXT NOT NULL,
                    executable BOOLEAN,
                    rent_epoch NUMERIC(20, 0),
                    data JSONB,
                    slot BIGINT NOT NULL,
                    timestamp TIMESTAMPTZ NOT NULL
                )
            """)

            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_transactions_slot ON transactions(slot);
                CREATE INDEX IF NOT EXISTS idx_transactions_timestamp ON transactions(timestamp);
                CREATE INDEX IF NOT EXISTS idx_accounts_owner ON accounts(owner);
                CREATE INDEX IF NOT EXISTS idx_accounts_slot ON accounts(slot);
            """)

    async def save(self, data: Union[IndexedData, Sequence[IndexedData]]) -> None:
        async with self.pool.acquire() as conn:
            for item in self.normalize_data(data):
                if isinstance(item, IndexedTransaction):
                    await self._save_transaction(conn, item)
                elif isinstance(item, IndexedAccount):
                    await self._save_account(conn, item)
                else:
                    raise TypeError(f"PostgresStorage cannot store {type(item).__name__}")

    @staticmethod
    def _json_data(record: IndexedData) -> Optional[str]:
        data = record_to_dict(record, plain=True)["data"]
        return None if data is None else json.dumps(data).decode("utf-8")

    async def _save_transaction(self, conn, tx: IndexedTransaction) -> None:
        await conn.execute("""
            INSERT INTO transactions
                (signature, slot, block_time, accounts, program_id, data, success, fee, timestamp)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            ON CONFLICT (signature) DO UPDATE SET
                slot = EXCLUDED.slot,
                block_time = EXCLUDED.block_time,
                accounts = EXCLUDED.accounts,
                program_id = EXCLUDED.program_id,
                data = EXCLUDED.data,
                success = EXCLUDED.success,
                fee = EXCLUDED.fee,
                timestamp = EXCLUDED.timestamp
        """,
            tx.signature,
            tx.slot,
            tx.block_time,
            list(tx.accounts),
            tx.program_id,
            self._json_data(tx),
            tx.success,
            tx.fee,
            tx.timestamp,
        )
        logger.debug(f"Saved transaction {tx.signature[:8]}")

    async def _save_account(self, conn, account: IndexedAccount) -> None:
        await conn.execute("""
            INSERT INTO accounts
                (address, lamports, owner, executable, rent_epoch, data, slot, timestamp)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            ON CONFLICT (address) DO UPDATE SET
                lamports = EXCLUDED.lamports,
                owner = EXCLUDED.owner,
                executable = EXCLUDED.executable,
                rent_epoch = EXCLUDED.rent_epoch,
                data = EXCLUDED.data,
                slot = EXCLUDED.slot,
                timestamp = EXCLUDED.timestamp
        """,
            account.address,
            account.lamports,
            account.owner,
            account.executable,
            Decimal(account.rent_epoch),
            self._json_data(account),
            account.slot,
            account.timestamp,
        )
        logger.debug(f"Saved account {account.address[:8]}")

    async def query(self, filter: Optional[Filter] = None) -> List[Dict[str, Any]]:
        sql, values = build_select(filter)
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(sql, *values)
        return [dict(row) for row in rows]
