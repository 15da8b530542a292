"""
Storage adapters. Optional backends import their drivers lazily through
create_storage() so that a JSON-only deployment does not need asyncpg, redis or pymongo.
"""
from solana_indexer.storage.base import StorageAdapter, matches_filter, validate_filter
from solana_indexer.storage.json_storage import JSONStorage
from solana_indexer.storage.memory import MemoryStorage

__all__ = [
    "StorageAdapter",
    "JSONStorage",
    "MemoryStorage",
    "create_storage",
    "matches_filter",
    "validate_filter",
]


def create_storage(settings) -> StorageAdapter:
    """Build the adapter selected by a StorageSettings instance."""
    if settings.backend == "memory":
        return MemoryStorage()
    if settings.backend == "json":
        return JSONStorage(settings.json_path)
    if settings.backend == "parquet":
        from solana_indexer.storage.parquet_storage import ParquetStorage
        return ParquetStorage(settings.parquet_dir)
    if settings.backend == "postgres":
        from solana_indexer.storage.postgres import PostgresStorage
        return PostgresStorage(settings.database_url)
    if settings.backend == "redis":
        from solana_indexer.storage.redis_storage import RedisStorage
        return RedisStorage(settings.redis_url, mode=settings.redis_mode, key=settings.redis_key)
    if settings.backend == "mongo":
        from solana_indexer.storage.mongo_storage import MongoStorage
        return MongoStorage(settings.mongodb_url, database=settings.mongodb_db, collection=settings.mongodb_collection)
    raise ValueError(f"Unknown storage backend {settings.backend!r}")
