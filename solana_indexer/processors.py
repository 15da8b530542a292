"""
Processor chain.

A processor is a sync or async callable ``(record, context) -> record | None``.
Returning None (``DROP``) vetoes the record: later processors never see it
and it is never saved. Steps run strictly one after another per record.
"""
import inspect
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterator, List, Optional, Union

from solana_indexer.exceptions import ProcessorError
from solana_indexer.models import IndexedAccount, IndexedData, IndexedTransaction, ProcessorContext
from solana_indexer.utils import parse_account_data

logger = logging.getLogger(__name__)

DROP = None

LAMPORTS_PER_SOL = 1_000_000_000

ProcessorResult = Optional[IndexedData]
DataProcessor = Callable[[IndexedData, ProcessorContext], Union[ProcessorResult, Awaitable[ProcessorResult]]]


def _step_name(step: DataProcessor) -> str:
    return getattr(step, "__name__", None) or type(step).__name__


class ProcessorChain:
    """Ordered list of processors applied to every record before storage."""

    def __init__(self, steps: Optional[List[DataProcessor]] = None):
        self._steps: List[DataProcessor] = list(steps or [])

    def add(self, step: DataProcessor) -> None:
        if not callable(step):
            raise TypeError(f"Processor must be callable, got {step!r}")
        self._steps.append(step)

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[DataProcessor]:
        return iter(self._steps)

    async def run(self, record: IndexedData, context: ProcessorContext) -> ProcessorResult:
        """Pass record through every step; stop at the first drop."""
        result = record
        # Snapshot so that steps added mid-pass do not apply to this record.
        for step in list(self._steps):
            try:
                result = step(result, context)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                raise ProcessorError(_step_name(step), e) from e

            if result is DROP:
                logger.debug(f"Record dropped by {_step_name(step)}")
                return DROP
        return result


def min_fee_filter(threshold: int) -> DataProcessor:
    """Drop transactions whose fee is missing or below threshold."""

    async def min_fee(record: IndexedData, context: ProcessorContext) -> ProcessorResult:
        if not isinstance(record, IndexedTransaction):
            return record
        if record.fee is None or record.fee < threshold:
            return DROP
        return record

    return min_fee


def successful_only() -> DataProcessor:
    async def successful(record: IndexedData, context: ProcessorContext) -> ProcessorResult:
        if isinstance(record, IndexedTransaction) and not record.success:
            return DROP
        return record

    return successful


def strip_fee() -> DataProcessor:
    async def without_fee(record: IndexedData, context: ProcessorContext) -> ProcessorResult:
        if isinstance(record, IndexedTransaction):
            return replace(record, fee=None)
        return record

    return without_fee


def _merged_data(record: IndexedTransaction, extra: dict) -> dict:
    data = dict(record.data) if isinstance(record.data, dict) else {}
    data.update(extra)
    return data


def annotate_fee(category: str = "high-fee") -> DataProcessor:
    """Attach the fee in SOL and a category label to transaction data."""

    async def fee_annotation(record: IndexedData, context: ProcessorContext) -> ProcessorResult:
        if not isinstance(record, IndexedTransaction) or record.fee is None:
            return record
        extra = {"fee_in_sol": record.fee / LAMPORTS_PER_SOL, "category": category}
        return replace(record, data=_merged_data(record, extra))

    return fee_annotation


def enrich_transaction() -> DataProcessor:
    async def enrichment(record: IndexedData, context: ProcessorContext) -> ProcessorResult:
        if not isinstance(record, IndexedTransaction):
            return record
        extra = {
            "account_count": len(record.accounts),
            "processed_at": datetime.now(timezone.utc).isoformat(),
        }
        return replace(record, data=_merged_data(record, extra))

    return enrichment


def decode_account_data(encoding: str = "base64") -> DataProcessor:
    async def account_data(record: IndexedData, context: ProcessorContext) -> ProcessorResult:
        if not isinstance(record, IndexedAccount):
            return record
        data: Any = record.data
        if isinstance(data, (bytes, bytearray)):
            data = parse_account_data(bytes(data), encoding)
        return replace(record, data=data)

    return account_data
