import logging
from typing import Any, Dict, List, Optional, Sequence, Union

import orjson as json
import redis.asyncio as redis

from solana_indexer.exceptions import StorageError
from solana_indexer.models import Filter, IndexedData, record_to_dict
from solana_indexer.storage.base import StorageAdapter, matches_filter, validate_filter

logger = logging.getLogger(__name__)

REDIS_MODES = ("list", "publish")


class RedisStorage(StorageAdapter):
    """
    Streams records through Redis.

    Modes:
    - ``list``:    LPUSH JSON records onto the list ``key``; query() reads it back.
    - ``publish``: PUBLISH JSON records on the channel ``key``; nothing is
                   kept, so query() always returns [].
    """

    def __init__(self, url: str = "redis://localhost:6379/0", mode: str = "list", key: str = "solixdb-events"):
        if mode not in REDIS_MODES:
            raise ValueError(f"Redis mode must be one of {REDIS_MODES}, got {mode!r}")
        self.url = url
        self.mode = mode
        self.key = key
        self.client: Optional[redis.Redis] = None

    async def connect(self) -> None:
        self.client = redis.from_url(self.url, decode_responses=True)
        await self.client.ping()
        logger.info(f"[RedisStorage] Connected in {self.mode} mode, key={self.key}")

    async def disconnect(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None

    def _require_client(self) -> redis.Redis:
        if self.client is None:
            raise StorageError("Redis client not connected. Call connect() first.")
        return self.client

    async def save(self, data: Union[IndexedData, Sequence[IndexedData]]) -> None:
        client = self._require_client()
        payloads = [json.dumps(record_to_dict(item, plain=True)) for item in self.normalize_data(data)]

        if self.mode == "list":
            async with client.pipeline(transaction=False) as pipe:
                for payload in payloads:
                    pipe.lpush(self.key, payload)
                await pipe.execute()
        else:
            for payload in payloads:
                await client.publish(self.key, payload)

    async def query(self, filter: Optional[Filter] = None) -> List[Dict[str, Any]]:
        client = self._require_client()
        filter = validate_filter(filter)

        if self.mode == "publish":
            return []

        results = []
        for raw in await client.lrange(self.key, 0, -1):
            try:
                item = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning(f"[RedisStorage] Skipping malformed entry in {self.key}")
                continue
            if matches_filter(item, filter):
                results.append(item)
        return results
