"""
MongoDB storage adapter
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Union

from bson.decimal128 import Decimal128
from pymongo import ASCENDING, DESCENDING, AsyncMongoClient

from solana_indexer.models import Filter, IndexedData, IndexedTransaction, record_to_dict
from solana_indexer.storage.base import StorageAdapter, validate_filter

logger = logging.getLogger(__name__)

MAX_INT64 = 2 ** 63 - 1

INDEXES = (
    [("signature", ASCENDING)],
    [("address", ASCENDING)],
    [("slot", ASCENDING)],
    [("timestamp", DESCENDING)],
)


class MongoStorage(StorageAdapter):
    """
    Keeps accounts and transactions as documents in a single collection.

    Records are inserted, not upserted: every pass adds new account
    snapshots, and re-indexed signatures produce duplicate documents.
    """

    def __init__(self, url: str, database: str = "solixdb", collection: str = "indexed_data"):
        self.url = url
        self.database_name = database
        self.collection_name = collection
        self.client: Optional[AsyncMongoClient] = None
        self.collection = None

    async def connect(self) -> None:
        self.client = AsyncMongoClient(self.url, tz_aware=True)
        await self.client.admin.command("ping")
        self.collection = self.client[self.database_name][self.collection_name]
        await self.create_indexes()
        logger.info(f"MongoDB storage initialised: {self.database_name}.{self.collection_name}")

    async def disconnect(self) -> None:
        if self.client is not None:
            await self.client.close()
            self.client = None
            self.collection = None
            logger.info("MongoDB connection closed")

    async def create_indexes(self) -> None:
        for keys in INDEXES:
            await self.collection.create_index(keys)

    @staticmethod
    def _to_document(record: IndexedData) -> Dict[str, Any]:
        document = record_to_dict(record)
        if isinstance(record, IndexedTransaction):
            document["accounts"] = list(record.accounts)
        # BSON integers are signed 64-bit; rent-exempt accounts report u64::MAX
        elif document["rent_epoch"] > MAX_INT64:
            document["rent_epoch"] = Decimal128(Decimal(document["rent_epoch"]))
        return document

    async def save(self, data: Union[IndexedData, Sequence[IndexedData]]) -> None:
        documents = [self._to_document(item) for item in self.normalize_data(data)]
        if len(documents) == 1:
            await self.collection.insert_one(documents[0])
        elif documents:
            await self.collection.insert_many(documents)

    async def query(self, filter: Optional[Filter] = None) -> List[Dict[str, Any]]:
        where = validate_filter(filter)
        cursor = self.collection.find(where, {"_id": 0})
        return await cursor.to_list(None)
