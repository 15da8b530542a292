import logging
import os
import tempfile
from typing import Any, Dict, List, Optional, Sequence, Union

import orjson as json

from solana_indexer.exceptions import StorageError
from solana_indexer.models import Filter, IndexedData, record_to_dict
from solana_indexer.storage.base import StorageAdapter, matches_filter, validate_filter

logger = logging.getLogger(__name__)


class JSONStorage(StorageAdapter):
    """
    Stores all records in one JSON array on the local filesystem.

    The whole file is rewritten after every save, so this suits small
    account watch lists and demos rather than high-volume history. Writes go
    to a temporary file that replaces the target, so an interrupted write
    never leaves a truncated file behind.
    """

    def __init__(self, file_path: str = "./solixdb-data.json"):
        self.file_path = os.path.abspath(file_path)
        self.data: List[Dict[str, Any]] = []

    async def connect(self) -> None:
        try:
            with open(self.file_path, "rb") as f:
                loaded = json.loads(f.read())
        except FileNotFoundError:
            self.data = []
            return
        except json.JSONDecodeError as e:
            # An unreadable file must never be replaced by an empty one.
            raise StorageError(f"{self.file_path} is not valid JSON: {e}") from e

        if not isinstance(loaded, list):
            raise StorageError(f"{self.file_path} must hold a JSON array, got {type(loaded).__name__}")
        self.data = loaded
        logger.info(f"[JSONStorage] Loaded {len(self.data)} records from {self.file_path}")

    async def disconnect(self) -> None:
        self._flush()

    async def save(self, data: Union[IndexedData, Sequence[IndexedData]]) -> None:
        items = self.normalize_data(data)
        self.data.extend(record_to_dict(item, plain=True) for item in items)
        self._flush()

    async def query(self, filter: Optional[Filter] = None) -> List[Dict[str, Any]]:
        filter = validate_filter(filter)
        return [item for item in self.data if matches_filter(item, filter)]

    def _flush(self) -> None:
        directory = os.path.dirname(self.file_path)
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".solixdb-", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(json.dumps(self.data, option=json.OPT_INDENT_2))
            os.replace(tmp_path, self.file_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
