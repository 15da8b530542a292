from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Optional, Sequence, Union

from solana_indexer.exceptions import InvalidFilterError
from solana_indexer.models import Filter, IndexedData, record_to_dict

FILTER_VALUE_TYPES = (str, int, float, bool, type(None))


class StorageAdapter(ABC):
    """Abstract sink for indexed records."""

    @abstractmethod
    async def connect(self) -> None:
        """Acquire connections, files or pools."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Release everything acquired by connect()."""
        pass

    @abstractmethod
    async def save(self, data: Union[IndexedData, Sequence[IndexedData]]) -> None:
        """Persist one record or a batch of records."""
        pass

    @abstractmethod
    async def query(self, filter: Optional[Filter] = None) -> List[Any]:
        """Return stored records whose fields equal every filter value."""
        pass

    @staticmethod
    def normalize_data(data: Union[IndexedData, Sequence[IndexedData]]) -> List[IndexedData]:
        if isinstance(data, (list, tuple)):
            return list(data)
        return [data]


def validate_filter(filter: Optional[Filter]) -> dict:
    """Return the filter as a dict; raise on values that are not comparable."""
    if not filter:
        return {}
    if not isinstance(filter, Mapping):
        raise InvalidFilterError(f"Filter must be a mapping, got {type(filter).__name__}")
    for key, value in filter.items():
        if not isinstance(key, str):
            raise InvalidFilterError(f"Filter keys must be field names, got {key!r}")
        if not isinstance(value, FILTER_VALUE_TYPES):
            raise InvalidFilterError(
                f"Filter value for {key!r} must be str, int, float, bool or None, got {type(value).__name__}"
            )
    return dict(filter)


def matches_filter(item: Union[IndexedData, Mapping[str, Any]], filter: Optional[Filter]) -> bool:
    if not filter:
        return True
    fields = item if isinstance(item, Mapping) else record_to_dict(item)
    # bool is an int subclass: keep True from matching 1
    for key, expected in filter.items():
        if key not in fields:
            return False
        actual = fields[key]
        if isinstance(actual, bool) != isinstance(expected, bool) or actual != expected:
            return False
    return True
