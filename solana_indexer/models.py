import base64
from dataclasses import asdict, dataclass, is_dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from solana_indexer.config import IndexerConfig


@dataclass(frozen=True)
class IndexedAccount:
    """Account state observed at ``slot``."""

    address: str
    lamports: int
    owner: str
    executable: bool
    rent_epoch: int
    slot: int
    timestamp: datetime
    data: Any = None

    kind = "account"


@dataclass(frozen=True)
class IndexedTransaction:
    """
    A confirmed transaction touching an indexed address or program.

    ``signature`` is the natural primary key. ``fee`` is None only when a
    processor removed it. ``program_id`` is set in program mode only.
    """

    signature: str
    slot: int
    block_time: Optional[int]
    accounts: Tuple[str, ...]
    success: bool
    fee: Optional[int]
    timestamp: datetime
    program_id: Optional[str] = None
    data: Any = None

    kind = "transaction"


IndexedData = Union[IndexedAccount, IndexedTransaction]

FilterValue = Union[str, int, float, bool, None]
Filter = Mapping[str, FilterValue]


@dataclass
class Cursor:
    """In-memory "before" watermark for signature fetches. Never persisted."""

    last_signature: Optional[str] = None
    last_slot: int = 0

    def advance(self, signature: str, slot: int) -> None:
        self.last_signature = signature
        self.last_slot = slot


@dataclass(frozen=True)
class ProcessorContext:
    connection: Any
    config: IndexerConfig


def _to_plain(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, (list, tuple)):
        return [_to_plain(item) for item in value]
    if isinstance(value, dict):
        return {key: _to_plain(item) for key, item in value.items()}
    return value


def record_to_dict(record: Union[IndexedData, Mapping[str, Any]], plain: bool = False) -> Dict[str, Any]:
    """
    Field mapping of a record.

    With ``plain=True`` the result only holds JSON-compatible values:
    datetimes become ISO-8601 strings and bytes become base64 strings.
    """
    if is_dataclass(record):
        result = asdict(record)
    else:
        result = dict(record)
    if plain:
        result = {key: _to_plain(value) for key, value in result.items()}
    return result
