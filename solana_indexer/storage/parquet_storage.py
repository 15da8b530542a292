import glob
import logging
import os
import time
from typing import Any, Dict, List, Optional, Sequence, Union

import orjson as json
import pyarrow as pa
import pyarrow.parquet as pq

from solana_indexer.models import Filter, IndexedAccount, IndexedData, IndexedTransaction, record_to_dict
from solana_indexer.schema import create_account_schema, create_transaction_schema
from solana_indexer.storage.base import StorageAdapter, matches_filter, validate_filter

logger = logging.getLogger(__name__)


class ParquetStorage(StorageAdapter):
    """
    Columnar sink: buffers records per kind and writes Parquet part files.

    Layout::

        <directory>/accounts/part-<ms>-<n>.parquet
        <directory>/transactions/part-<ms>-<n>.parquet

    A part file is written whenever a buffer reaches ``chunk_size`` rows and
    on disconnect(). query() reads every part file plus the unwritten buffer.
    """

    def __init__(self, directory: str = "./solixdb-data", chunk_size: int = 1000, compression: str = "zstd"):
        self.directory = os.path.abspath(directory)
        self.chunk_size = chunk_size
        self.compression = compression
        self.schemas = {
            IndexedAccount.kind: ("accounts", create_account_schema()),
            IndexedTransaction.kind: ("transactions", create_transaction_schema()),
        }
        self._buffers: Dict[str, List[Dict[str, Any]]] = {kind: [] for kind in self.schemas}
        self._part_counter = 0

    async def connect(self) -> None:
        for folder, _ in self.schemas.values():
            os.makedirs(os.path.join(self.directory, folder), exist_ok=True)

    async def disconnect(self) -> None:
        for kind in self.schemas:
            self._write_part(kind)

    async def save(self, data: Union[IndexedData, Sequence[IndexedData]]) -> None:
        for item in self.normalize_data(data):
            if not isinstance(item, (IndexedAccount, IndexedTransaction)):
                raise TypeError(f"ParquetStorage cannot store {type(item).__name__}")
            buffer = self._buffers[item.kind]
            buffer.append(self._to_row(item))
            if len(buffer) >= self.chunk_size:
                self._write_part(item.kind)

    async def query(self, filter: Optional[Filter] = None) -> List[Dict[str, Any]]:
        filter = validate_filter(filter)
        results = []
        for kind, (folder, _) in self.schemas.items():
            rows: List[Dict[str, Any]] = []
            for path in sorted(glob.glob(os.path.join(self.directory, folder, "*.parquet"))):
                rows.extend(pq.read_table(path).to_pylist())
            rows.extend(self._buffers[kind])
            for row in rows:
                record = self._from_row(kind, row)
                if matches_filter(record, filter):
                    results.append(record)
        return results

    def _write_part(self, kind: str) -> None:
        rows = self._buffers[kind]
        if not rows:
            return
        folder, schema = self.schemas[kind]
        self._part_counter += 1
        path = os.path.join(
            self.directory, folder, f"part-{int(time.time() * 1000)}-{self._part_counter:05d}.parquet"
        )
        table = pa.Table.from_pylist(rows, schema=schema)
        pq.write_table(table, path, compression=self.compression)
        logger.info(f"[ParquetStorage] Wrote {table.num_rows} {folder} rows to {path}")
        self._buffers[kind] = []

    @staticmethod
    def _to_row(record: IndexedData) -> Dict[str, Any]:
        row = record_to_dict(record)
        if isinstance(record, IndexedTransaction):
            row["accounts"] = list(record.accounts)
            row["data"] = None if record.data is None else json.dumps(record.data).decode("utf-8")
            return row

        # Account data is stored as binary; data_encoding restores its original type on read.
        data = record.data
        if data is None:
            encoding = None
        elif isinstance(data, (bytes, bytearray)):
            data, encoding = bytes(data), "bytes"
        elif isinstance(data, str):
            data, encoding = data.encode("utf-8"), "text"
        else:
            data, encoding = json.dumps(data), "json"
        row["data"] = data
        row["data_encoding"] = encoding
        return row

    @staticmethod
    def _from_row(kind: str, row: Dict[str, Any]) -> Dict[str, Any]:
        record = dict(row)
        if kind == IndexedTransaction.kind:
            if record.get("data") is not None:
                record["data"] = json.loads(record["data"])
            return record

        encoding = record.pop("data_encoding", None)
        data = record.get("data")
        if data is not None:
            if encoding == "text":
                record["data"] = data.decode("utf-8")
            elif encoding == "json":
                record["data"] = json.loads(data)
        return record
