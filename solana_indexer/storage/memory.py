from typing import List, Optional, Sequence, Union

from solana_indexer.models import Filter, IndexedData
from solana_indexer.storage.base import StorageAdapter, matches_filter, validate_filter


class MemoryStorage(StorageAdapter):
    """Keeps records in a list for the lifetime of the process."""

    def __init__(self):
        self.records: List[IndexedData] = []
        self.connected = False

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    async def save(self, data: Union[IndexedData, Sequence[IndexedData]]) -> None:
        self.records.extend(self.normalize_data(data))

    async def query(self, filter: Optional[Filter] = None) -> List[IndexedData]:
        filter = validate_filter(filter)
        return [record for record in self.records if matches_filter(record, filter)]
