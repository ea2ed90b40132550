"""CLI entrypoint for scheduler."""

import argparse
import asyncio
import logging
import signal
import sys

from kv_jobs.config import QueueConfig
from kv_jobs.registry import create_default_registry
from kv_jobs.scheduler import Scheduler, run_scheduler_loop
from kv_jobs.service import QueueService
from kv_jobs.worker_main import create_kv_store, setup_logging


def main():
    """Main entrypoint for scheduler."""
    setup_logging()
    logger = logging.getLogger(__name__)

    parser = argparse.ArgumentParser(description="kv_jobs scheduler")
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between schedule scans (default: KV_JOBS_SCHEDULER_INTERVAL)",
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
        db_pool = None
        try:
            kv, db_pool = await create_kv_store(config, logger)
            service = QueueService(config, kv, create_default_registry(config), logger)

            logger.info("Starting scheduler loop...")
            await run_scheduler_loop(
                Scheduler(service, logger),
                logger=logger,
                loop_interval_seconds=args.interval,
                shutdown_event=shutdown_event,
            )
        except Exception as e:
            logger.error(f"Fatal error in scheduler: {e}", exc_info=True)
            sys.exit(1)
        finally:
            if db_pool:
                logger.info("Closing database connection pool...")
                await db_pool.close()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
