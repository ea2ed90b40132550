"""CLI entrypoint and programmatic interface for worker."""

import argparse
import asyncio
import importlib
import logging
import os
import signal
import sys
from typing import Optional, Tuple

import asyncpg

from kv_jobs.config import QueueConfig
from kv_jobs.ddl import KV_TABLE_DDL
from kv_jobs.kv import InMemoryKeyValueStore, KeyValueStore, PostgresKeyValueStore
from kv_jobs.registry import JobRegistry, create_default_registry
from kv_jobs.service import QueueService
from kv_jobs.worker import run_worker_loop


def setup_logging():
    """Setup logging configuration."""
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def create_db_pool(config: QueueConfig):
    """Create database connection pool and make sure the kv table exists."""
    pool = await asyncpg.create_pool(config.db_dsn, min_size=2, max_size=10)
    async with pool.acquire() as conn:
        await conn.execute(KV_TABLE_DDL)
    return pool


async def create_kv_store(
    config: QueueConfig, logger: logging.Logger
) -> Tuple[KeyValueStore, Optional[asyncpg.Pool]]:
    """Postgres-backed store when a DSN is configured, in-memory otherwise."""
    if config.db_dsn:
        pool = await create_db_pool(config)
        return PostgresKeyValueStore(pool), pool

    logger.warning(
        "KV_JOBS_DB_DSN not set, using an in-memory store visible to this process only"
    )
    return InMemoryKeyValueStore(), None


def load_handlers(registry: JobRegistry, handlers_module: Optional[str] = None):
    """
    Load extra job handlers from a module.

    The module must define ``register_handlers(registry)``.
    """
    handlers_module = handlers_module or os.getenv("KV_JOBS_HANDLERS_MODULE")
    if not handlers_module:
        return

    try:
        module = importlib.import_module(handlers_module)
    except ImportError as e:
        logging.warning(f"Failed to import handlers module {handlers_module}: {e}")
        return

    register = getattr(module, "register_handlers", None)
    if register is None:
        logging.warning(f"{handlers_module} has no register_handlers(registry)")
        return

    register(registry)
    logging.info(f"Loaded handlers from {handlers_module}")


async def run_worker(
    queue_name: Optional[str] = None,
    config: Optional[QueueConfig] = None,
    kv: Optional[KeyValueStore] = None,
    registry: Optional[JobRegistry] = None,
    logger: Optional[logging.Logger] = None,
    shutdown_event: Optional[asyncio.Event] = None,
    sleep_time: Optional[float] = None,
    max_jobs: Optional[int] = None,
    handlers_module: Optional[str] = None,
) -> int:
    """
    Run the worker programmatically.

    Args:
        queue_name: Queue name to process (defaults to the configured default)
        config: QueueConfig instance. If None, will load from environment.
        kv: Key-value store. If None, will create one from config.
        registry: JobRegistry instance. If None, the built-in job types are used.
        logger: Logger instance. If None, will create default logger.
        shutdown_event: Optional asyncio.Event for graceful shutdown.
        sleep_time: Seconds to sleep between empty polls.
        max_jobs: Exit after processing this many jobs.
        handlers_module: Module path to load handlers from. If None, uses
            KV_JOBS_HANDLERS_MODULE env var.

    Example:
        ```python
        import asyncio
        from kv_jobs.worker_main import run_worker

        asyncio.run(run_worker(queue_name="high", handlers_module="myapp.jobs"))
        ```
    """
    if config is None:
        config = QueueConfig.from_env()

    if logger is None:
        logger = logging.getLogger(__name__)

    if registry is None:
        registry = create_default_registry(config)

    if shutdown_event is None:
        shutdown_event = asyncio.Event()

    load_handlers(registry, handlers_module)

    db_pool = None
    if kv is None:
        kv, db_pool = await create_kv_store(config, logger)

    service = QueueService(config, kv, registry, logger)

    try:
        return await run_worker_loop(
            service,
            queue=queue_name,
            logger=logger,
            sleep_time=sleep_time,
            shutdown_event=shutdown_event,
            max_jobs=max_jobs,
        )
    finally:
        if db_pool:
            await db_pool.close()


def main():
    """Main entrypoint for worker."""
    setup_logging()
    logger = logging.getLogger(__name__)

    parser = argparse.ArgumentParser(description="kv_jobs worker")
    parser.add_argument(
        "--queue",
        default=None,
        help="Queue name to process (default: the configured default queue)",
    )
    parser.add_argument(
        "--sleep-time",
        type=float,
        default=None,
        help="Seconds to sleep when no job is available",
    )
    parser.add_argument(
        "--max-jobs",
        type=int,
        default=None,
        help="Exit after processing this many jobs",
    )

    args = parser.parse_args()

    try:
        config = QueueConfig.from_env()
    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        sys.exit(1)

    # Setup shutdown event
    shutdown_event = asyncio.Event()

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        shutdown_event.set()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    async def run():
        """Async main function."""
        try:
            logger.info(f"Starting worker for queue: {args.queue or config.default_queue}...")
            await run_worker(
                queue_name=args.queue,
                config=config,
                logger=logger,
                shutdown_event=shutdown_event,
                sleep_time=args.sleep_time,
                max_jobs=args.max_jobs,
            )
        except Exception as e:
            logger.error(f"Fatal error in worker: {e}", exc_info=True)
            sys.exit(1)

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
