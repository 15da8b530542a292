import asyncio
import logging
import os
import signal
import sys

from dotenv import load_dotenv

from solana_indexer.config import config_from_env, parse_bool, storage_settings_from_env
from solana_indexer.exceptions import ConfigError
from solana_indexer.indexer import SolanaIndexer
from solana_indexer.metrics import start_metrics_server
from solana_indexer.storage import create_storage

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def setup_signal_handlers(stop_event: asyncio.Event) -> None:
    """Setup graceful shutdown handlers"""
    loop = asyncio.get_running_loop()

    def signal_handler(signum):
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        stop_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, signal_handler, signum)
        except NotImplementedError:
            # Windows event loops do not support add_signal_handler
            signal.signal(signum, lambda s, f: loop.call_soon_threadsafe(stop_event.set))


async def run() -> None:
    config = config_from_env()
    storage = create_storage(storage_settings_from_env())

    metrics_port = os.getenv("METRICS_PORT")
    if metrics_port:
        start_metrics_server(int(metrics_port))

    indexer = SolanaIndexer(config, storage)
    if parse_bool(os.getenv("WAIT_FOR_RPC"), default=True):
        logger.info(f"Waiting for RPC endpoint {indexer.rpc_provider.get_endpoint()}...")
        await indexer.rpc_provider.ensure_connected()

    stop_event = asyncio.Event()
    setup_signal_handlers(stop_event)

    async with indexer:
        logger.info("Indexer is running. Press Ctrl+C to stop.")
        await stop_event.wait()

    logger.info("Indexer shut down cleanly")


def main() -> None:
    """Main entry point"""
    load_dotenv()
    setup_logging(os.getenv("LOG_LEVEL", "INFO"))

    try:
        asyncio.run(run())
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")


if __name__ == "__main__":
    main()
