import logging

from prometheus_client import Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)

records_saved = Counter("indexer_records_saved", "Records persisted to storage", ["kind"])
records_dropped = Counter("indexer_records_dropped", "Records dropped by the processor chain", ["kind"])
indexing_errors = Counter("indexer_errors", "Errors caught while indexing", ["stage"])

passes = Counter("indexer_passes", "Completed indexing passes", ["mode"])
pass_duration = Histogram("indexer_pass_duration_seconds", "Duration of one indexing pass")

rpc_reconnects = Counter("indexer_rpc_reconnects", "RPC reconnect attempts")
cursor_slot = Gauge("indexer_cursor_slot", "Slot of the newest signature behind the cursor")


def start_metrics_server(port: int) -> None:
    """Expose /metrics on the given port."""
    start_http_server(port)
    logger.info(f"Metrics available at http://0.0.0.0:{port}/metrics")
