import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from solders.pubkey import Pubkey
from solders.signature import Signature

from solana_indexer import metrics
from solana_indexer.config import (
    AccountIndexerConfig,
    AnyIndexerConfig,
    IndexerType,
    ProgramIndexerConfig,
    TransactionIndexerConfig,
)
from solana_indexer.exceptions import ProcessorError, StorageError
from solana_indexer.models import Cursor, Filter, IndexedAccount, IndexedData, IndexedTransaction, ProcessorContext
from solana_indexer.processors import DataProcessor, ProcessorChain
from solana_indexer.rpc import BaseRPCProvider, create_rpc_provider
from solana_indexer.storage.base import StorageAdapter
from solana_indexer.utils import shorten_address

logger = logging.getLogger(__name__)


def _account_keys(message: Any) -> List[str]:
    """Account addresses of a transaction message, parsed or raw."""
    keys = []
    for key in getattr(message, "account_keys", None) or []:
        pubkey = getattr(key, "pubkey", key)
        keys.append(str(pubkey))
    return keys


class SolanaIndexer:
    """
    Polls a Solana RPC node and saves every record that survives the
    processor chain.

    start() connects storage, runs one pass, then schedules a pass every
    ``config.poll_interval`` ms until stop(). Passes fired by the timer run as
    independent tasks, so a slow pass may overlap the next one unless the
    config enables ``skip_overlapping_passes``.
    """

    def __init__(
        self,
        config: AnyIndexerConfig,
        storage: StorageAdapter,
        rpc_provider: Optional[BaseRPCProvider] = None,
    ):
        self.config = config
        self.storage = storage
        self.rpc_provider = rpc_provider or create_rpc_provider(config.env, config.rpc_url)
        self.processors = ProcessorChain()

        self.running: bool = False
        self._poll_task: Optional[asyncio.Task] = None
        self._pass_tasks: Set[asyncio.Task] = set()

        # Not persisted: a new process starts again from the chain head.
        self.cursor = Cursor()
        self.address_cursors: Dict[str, Cursor] = {}

    def add_processor(self, processor: DataProcessor) -> None:
        """Append a processor. Register processors before start()."""
        self.processors.add(processor)

    async def start(self) -> None:
        if self.running:
            logger.warning("Indexer is already running")
            return

        logger.info(
            f"Starting indexer: env={self.config.env.value}, type={self.config.type.value}, "
            f"endpoint={self.rpc_provider.get_endpoint()}"
        )

        try:
            await self.storage.connect()
        except Exception as e:
            raise StorageError(f"Storage connect failed: {e}") from e
        self.running = True

        await self.index_once()

        self._poll_task = asyncio.create_task(self._poll_loop(), name="indexer-poll")
        logger.info("Indexer started successfully")

    async def stop(self) -> None:
        """
        Cancel the poll timer and disconnect storage.

        Passes already fired by the timer are not cancelled and may finish
        after stop() returns.
        """
        if not self.running:
            return

        logger.info("Stopping indexer...")
        self.running = False

        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

        try:
            await self.storage.disconnect()
        except Exception as e:
            raise StorageError(f"Storage disconnect failed: {e}") from e
        logger.info("Indexer stopped")

    async def close(self) -> None:
        """Stop indexing and close the RPC client."""
        await self.stop()
        await self.rpc_provider.close()

    async def __aenter__(self) -> "SolanaIndexer":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def query(self, filter: Optional[Filter] = None) -> List[Any]:
        return await self.storage.query(filter or {})

    @property
    def pass_in_flight(self) -> bool:
        return any(not task.done() for task in self._pass_tasks)

    async def wait_for_passes(self) -> None:
        """Wait for timer-fired passes that are still running."""
        pending = [task for task in self._pass_tasks if not task.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _poll_loop(self) -> None:
        interval = self.config.poll_interval_seconds
        while self.running:
            await asyncio.sleep(interval)
            if not self.running:
                break
            if self.config.skip_overlapping_passes and self.pass_in_flight:
                logger.warning("Previous pass still running, skipping this tick")
                continue
            task = asyncio.create_task(self.index_once())
            self._pass_tasks.add(task)
            task.add_done_callback(self._pass_tasks.discard)

    async def index_once(self) -> None:
        """Run one pass for the configured mode. Never raises."""
        started = time.monotonic()
        try:
            if self.config.type is IndexerType.ACCOUNT:
                await self.index_accounts(self.config)
            elif self.config.type is IndexerType.TRANSACTION:
                await self.index_transactions(self.config)
            elif self.config.type is IndexerType.PROGRAM:
                await self.index_program(self.config)
            metrics.passes.labels(mode=self.config.type.value).inc()
        except Exception as e:
            metrics.indexing_errors.labels(stage="pass").inc()
            logger.error(f"Indexing error: {e}", exc_info=True)
        finally:
            metrics.pass_duration.observe(time.monotonic() - started)

    def _context(self) -> ProcessorContext:
        return ProcessorContext(connection=self.rpc_provider.get_connection(), config=self.config)

    async def _process_and_save(self, record: IndexedData) -> bool:
        """
        Run record through the processors and save it if it survives.

        A processor failure skips the record. A storage failure raises
        StorageError and aborts the pass.
        """
        try:
            processed = await self.processors.run(record, self._context())
        except ProcessorError as e:
            metrics.indexing_errors.labels(stage="processor").inc()
            logger.error(f"Skipping {record.kind}: {e}")
            return False

        if processed is None:
            metrics.records_dropped.labels(kind=record.kind).inc()
            return False

        try:
            await self.storage.save(processed)
        except Exception as e:
            raise StorageError(f"Failed to save {record.kind}: {e}") from e
        metrics.records_saved.labels(kind=record.kind).inc()
        return True

    async def index_accounts(self, config: AccountIndexerConfig) -> None:
        connection = self.rpc_provider.get_connection()

        for address in config.accounts:
            try:
                account = await self._fetch_account(connection, address)
            except Exception as e:
                metrics.indexing_errors.labels(stage="account").inc()
                logger.error(f"Error indexing account {address}: {e}")
                continue

            if account is None:
                logger.debug(f"Account {shorten_address(address)} not found")
                continue

            if await self._process_and_save(account):
                logger.debug(f"Indexed account {shorten_address(address)}")

    async def _fetch_account(self, connection, address: str) -> Optional[IndexedAccount]:
        resp = await connection.get_account_info(Pubkey.from_string(address))
        info = resp.value
        if info is None:
            return None

        slot = (await connection.get_slot()).value
        return IndexedAccount(
            address=address,
            lamports=info.lamports,
            owner=str(info.owner),
            executable=info.executable,
            rent_epoch=info.rent_epoch or 0,
            data=info.data,
            slot=slot,
            timestamp=datetime.now(timezone.utc),
        )

    async def index_transactions(self, config: TransactionIndexerConfig) -> None:
        if not config.accounts:
            logger.warning("No accounts configured for transaction indexing")
            return

        connection = self.rpc_provider.get_connection()
        for address in config.accounts:
            if config.per_address_cursor:
                cursor = self.address_cursors.setdefault(address, Cursor())
            else:
                # Shared by every address: effectively tracks the last one processed.
                cursor = self.cursor
            await self._index_signatures(connection, address, cursor, program_id=None)

    async def index_program(self, config: ProgramIndexerConfig) -> None:
        connection = self.rpc_provider.get_connection()
        await self._index_signatures(connection, config.program_id, self.cursor, program_id=config.program_id)

    async def _index_signatures(self, connection, address: str, cursor: Cursor, program_id: Optional[str]) -> None:
        """
        Fetch up to batch_size signatures older than the cursor for address,
        save their transactions oldest first, then move the cursor to the
        newest signature of the batch.
        """
        try:
            before = Signature.from_string(cursor.last_signature) if cursor.last_signature else None
            resp = await connection.get_signatures_for_address(
                Pubkey.from_string(address),
                before=before,
                limit=self.config.batch_size,
            )
            signatures = list(resp.value or [])
        except Exception as e:
            metrics.indexing_errors.labels(stage="signatures").inc()
            logger.error(f"Error indexing transactions for {address}: {e}")
            return

        if not signatures:
            return

        # RPC returns newest first
        for sig_info in reversed(signatures):
            signature = str(sig_info.signature)
            try:
                indexed = await self._fetch_transaction(connection, sig_info, program_id)
            except Exception as e:
                metrics.indexing_errors.labels(stage="transaction").inc()
                logger.error(f"Error fetching transaction {signature}: {e}")
                continue

            if indexed is None:
                continue

            if await self._process_and_save(indexed):
                logger.debug(f"Indexed transaction {signature[:8]}")

        newest = signatures[0]
        cursor.advance(str(newest.signature), newest.slot)
        metrics.cursor_slot.set(newest.slot)

    async def _fetch_transaction(self, connection, sig_info, program_id: Optional[str]) -> Optional[IndexedTransaction]:
        resp = await connection.get_transaction(
            sig_info.signature,
            encoding="jsonParsed",
            max_supported_transaction_version=0,
        )
        tx = resp.value
        if tx is None:
            return None

        meta = tx.transaction.meta
        message = tx.transaction.transaction.message
        block_time = sig_info.block_time or None

        return IndexedTransaction(
            signature=str(sig_info.signature),
            slot=sig_info.slot,
            block_time=block_time,
            accounts=tuple(_account_keys(message)),
            program_id=program_id,
            success=meta is not None and meta.err is None,
            fee=(meta.fee if meta is not None else None) or 0,
            timestamp=datetime.fromtimestamp(block_time or 0, tz=timezone.utc),
        )
