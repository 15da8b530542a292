# Solana Indexer Package
"""
Polling Solana indexer:
- SolanaIndexer: schedules passes over accounts, address history or program history
- ProcessorChain: user processors applied to every record before storage
- Storage adapters: JSON, Parquet, PostgreSQL, Redis and in-memory sinks
"""

__version__ = "0.1.0"

# Expose main classes for easier imports
from solana_indexer.config import (
    AccountIndexerConfig,
    Environment,
    IndexerType,
    ProgramIndexerConfig,
    TransactionIndexerConfig,
)
from solana_indexer.indexer import SolanaIndexer
from solana_indexer.models import Cursor, IndexedAccount, IndexedTransaction, ProcessorContext
from solana_indexer.processors import DROP, ProcessorChain
from solana_indexer.rpc import SolanaRPCProvider, create_rpc_provider
from solana_indexer.storage import JSONStorage, MemoryStorage, StorageAdapter

__all__ = [
    "SolanaIndexer",
    "AccountIndexerConfig",
    "TransactionIndexerConfig",
    "ProgramIndexerConfig",
    "Environment",
    "IndexerType",
    "IndexedAccount",
    "IndexedTransaction",
    "ProcessorContext",
    "Cursor",
    "DROP",
    "ProcessorChain",
    "SolanaRPCProvider",
    "create_rpc_provider",
    "StorageAdapter",
    "JSONStorage",
    "MemoryStorage",
]
