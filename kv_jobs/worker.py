"""Worker loop for kv_jobs."""

import asyncio
import logging
from typing import Optional

from kv_jobs.service import QueueService


async def run_worker_loop(
    service: QueueService,
    queue: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
    sleep_time: Optional[float] = None,
    shutdown_event: Optional[asyncio.Event] = None,
    max_jobs: Optional[int] = None,
) -> int:
    """
    Run the worker loop that processes jobs from one queue.

    Args:
        service: Queue service used to dequeue and execute jobs
        queue: Queue name to poll (defaults to the configured default queue)
        logger: Logger instance
        sleep_time: Seconds to sleep when the queue has nothing eligible
        shutdown_event: Optional event to signal shutdown
        max_jobs: Stop after processing this many jobs

    Returns:
        int: Number of jobs processed
    """
    queue = queue or service.config.default_queue
    logger = logger or service.logger
    if sleep_time is None:
        sleep_time = service.config.sleep_time

    processed = 0
    logger.info(f"Starting worker loop for queue {queue}")

    while True:
        # Check for shutdown signal
        if shutdown_event and shutdown_event.is_set():
            logger.info("Shutdown signal received, exiting worker loop")
            break

        if max_jobs is not None and processed >= max_jobs:
            logger.info(f"Processed {processed} jobs, exiting worker loop")
            break

        try:
            job = await service.get_next_job(queue)

            if job is None:
                logger.debug(f"No jobs available on queue {queue}")
                await asyncio.sleep(sleep_time)
                continue

            await service.process_job(job)
            processed += 1

        except asyncio.CancelledError:
            logger.info(f"Worker for queue {queue} cancelled")
            raise
        except Exception as e:
            logger.error(f"Error in worker loop: {str(e)}", exc_info=True)
            await asyncio.sleep(sleep_time)

    return processed


class Worker:
    """
    Start/stop handle around ``run_worker_loop``.

    ``stop()`` only prevents new jobs from being taken; a handler already
    running is allowed to finish.

    Example:
        ```python
        worker = Worker(service, queue="high")
        await worker.start()
        ...
        await worker.stop()
        ```
    """

    def __init__(
        self,
        service: QueueService,
        queue: Optional[str] = None,
        sleep_time: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.service = service
        self.queue = queue or service.config.default_queue
        self.sleep_time = sleep_time
        self.logger = logger or logging.getLogger(__name__)
        self._shutdown_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def work(self, max_jobs: Optional[int] = None) -> int:
        """Run the loop in the current task until stopped."""
        self._running = True
        try:
            return await run_worker_loop(
                self.service,
                queue=self.queue,
                logger=self.logger,
                sleep_time=self.sleep_time,
                shutdown_event=self._shutdown_event,
                max_jobs=max_jobs,
            )
        finally:
            self._running = False
            self._shutdown_event.clear()

    async def start(self) -> bool:
        """Run the loop as a background task; False if already running."""
        if self._running:
            self.logger.warning(f"Worker for queue {self.queue} is already running")
            return False

        self._running = True
        self._task = asyncio.create_task(self.work())
        self.logger.info(f"Worker task created for queue {self.queue}")
        return True

    async def stop(self, wait: bool = True) -> bool:
        """
        Signal the loop to exit; False if not running.

        With ``wait=False`` this returns as soon as the signal is set and the
        in-flight job, if any, finishes in the background. Poll
        ``is_running`` to see when the loop has exited.
        """
        if not self._running:
            self.logger.warning(f"Worker for queue {self.queue} is not running")
            return False

        self._shutdown_event.set()
        if not wait:
            self.logger.info(f"Worker for queue {self.queue} asked to stop")
            return True

        if self._task:
            await self._task
            self._task = None

        self.logger.info(f"Worker for queue {self.queue} stopped")
        return True
