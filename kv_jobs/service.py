"""High-level service layer for queue operations."""

import inspect
import logging
import time
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Optional, Union

from kv_jobs.config import QueueConfig
from kv_jobs.errors import JobNotFoundError, UnknownJobTypeError
from kv_jobs.kv import KeyValueStore
from kv_jobs.models import Job, JobStatus, QueueStats, utcnow
from kv_jobs.registry import JobRegistry
from kv_jobs.retry import calculate_backoff, should_retry
from kv_jobs.store import JobStore


class QueueService:
    """
    Dispatch, dequeue, execute and retry jobs stored in a key-value store.

    Dequeue is a read-scan-write over a shared list and is not atomic, so two
    workers polling the same queue can both receive a job. Delivery is
    at-least-once and handlers are expected to be idempotent.
    """

    def __init__(
        self,
        config: QueueConfig,
        kv: KeyValueStore,
        registry: JobRegistry,
        logger: Optional[logging.Logger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config
        self.kv = kv
        self.store = JobStore(kv, config)
        self.registry = registry
        self.logger = logger or logging.getLogger(__name__)
        self._clock = clock or utcnow

    def now(self) -> datetime:
        return self._clock()

    async def dispatch(
        self,
        type: str,
        payload: Optional[dict[str, Any]] = None,
        *,
        queue: Optional[str] = None,
        delay: int = 0,
        retries: Optional[int] = None,
        timeout: Optional[int] = None,
    ) -> str:
        """
        Create a pending job and append it to its queue.

        Args:
            type: Job type name; it is not checked against the registry here
            payload: Job arguments
            queue: Target queue (defaults to the job type's queue, then the
                configured default queue)
            delay: Seconds before the job becomes eligible
            retries: Override for the job type's retry count
            timeout: Override for the job type's advisory timeout

        Returns:
            str: The new job ID
        """
        if delay < 0:
            raise ValueError("delay must be >= 0")

        job_type = self.registry.get(type)
        if queue is None:
            queue = job_type.queue if job_type else self.config.default_queue
        if retries is None:
            retries = job_type.max_retries if job_type else self.config.max_retries
        if timeout is None:
            timeout = job_type.timeout if job_type else self.config.job_timeout

        now = self.now()
        job = Job(
            type=type,
            payload=payload or {},
            queue=queue,
            attempts=0,
            max_retries=retries,
            timeout=timeout,
            status=JobStatus.PENDING,
            created_at=now,
            available_at=now + timedelta(seconds=delay),
        )

        await self.store.save_job(job)
        await self.store.push_to_queue(queue, job.id)

        self.logger.info(f"Dispatched job {job.id} (type={type}) to queue {queue}")
        return job.id

    async def get_job_status(self, job_id: str) -> Optional[Job]:
        """Get a job record, or None if it does not exist."""
        return await self.store.get_job(job_id)

    async def get_job(self, job_id: str) -> Job:
        """Get a job record, raising JobNotFoundError if it does not exist."""
        job = await self.store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def get_next_job(self, queue: Optional[str] = None) -> Optional[Job]:
        """
        Take the first eligible job off a queue.

        Ids whose record has disappeared are dropped from the list. The job
        returned is removed from the list but its record is left untouched.
        """
        queue = queue or self.config.default_queue
        job_ids = await self.store.get_queue(queue)
        now = self.now()

        remaining: list[str] = []
        found: Optional[Job] = None
        dropped = 0

        for index, job_id in enumerate(job_ids):
            job = await self.store.get_job(job_id)
            if job is None:
                dropped += 1
                continue
            if job.is_available(now):
                found = job
                remaining.extend(job_ids[index + 1 :])
                break
            remaining.append(job_id)

        if dropped:
            self.logger.debug(f"Dropped {dropped} missing jobs from queue {queue}")
        if found is not None or dropped:
            await self.store.save_queue(queue, remaining)

        return found

    async def process_job(self, job: Job) -> Job:
        """
        Execute one job and record the outcome.

        Handler errors never propagate; they are resolved into a scheduled
        retry or a permanent failure. A job whose stored record is gone or
        no longer pending (cancelled after dequeue, for instance) is not run.
        """
        current = await self.store.get_job(job.id)
        if current is None:
            self.logger.warning(f"Job {job.id} has no record, skipping")
            return job
        if current.status != JobStatus.PENDING:
            self.logger.info(
                f"Job {job.id} is {current.status.value}, not pending, skipping"
            )
            return current
        job = current

        job.status = JobStatus.PROCESSING
        job.started_at = self.now()
        job.attempts += 1
        await self.store.save_job(job)

        self.logger.info(
            f"Executing job {job.id} (type={job.type}, attempt={job.attempts})"
        )

        try:
            await self._execute(job)
        except Exception as e:
            self.logger.error(f"Job {job.id} failed: {str(e)}", exc_info=True)
            cancelled = await self._cancelled_while_running(job)
            if cancelled is not None:
                return cancelled
            return await self.handle_job_failure(job, e)

        cancelled = await self._cancelled_while_running(job)
        if cancelled is not None:
            return cancelled

        job.status = JobStatus.COMPLETED
        job.completed_at = self.now()
        await self.store.save_job(job)

        self.logger.info(f"Job {job.id} completed successfully")
        return job

    async def _execute(self, job: Job) -> Any:
        job_type = self.registry.get(job.type)
        if job_type is None or job_type.handler is None:
            raise UnknownJobTypeError(job.type)

        payload = job_type.parse_payload(job.payload)
        ctx = {"job": job, "logger": self.logger, "store": self.kv}

        started = time.monotonic()
        result = job_type.handler(ctx, payload)
        if inspect.isawaitable(result):
            result = await result
        elapsed = time.monotonic() - started

        # Timeouts are advisory, a slow handler is reported but not aborted
        if elapsed > job.timeout:
            self.logger.warning(
                f"Job {job.id} took {elapsed:.1f}s, exceeding its {job.timeout}s timeout"
            )
        return result

    async def _cancelled_while_running(self, job: Job) -> Optional[Job]:
        current = await self.store.get_job(job.id)
        if current is not None and current.status == JobStatus.CANCELLED:
            self.logger.info(f"Job {job.id} was cancelled while running")
            return current
        return None

    async def handle_job_failure(
        self, job: Job, error: Union[BaseException, str]
    ) -> Job:
        """
        Apply the retry policy to a job whose attempt just failed.

        While ``attempts <= max_retries`` the job goes back to its queue with
        an exponential backoff delay; after that it is marked failed and its
        id is added to the failed-jobs list.
        """
        message = str(error) or type(error).__name__
        now = self.now()
        job.error = message

        if should_retry(job.attempts, job.max_retries):
            delay = calculate_backoff(self.config.backoff_policy(), job.attempts)
            job.status = JobStatus.PENDING
            job.available_at = now + timedelta(seconds=delay)
            await self.store.save_job(job)
            await self.store.push_to_queue(job.queue, job.id)

            self.logger.info(
                f"Job {job.id} failed, retrying in {delay} seconds "
                f"(attempt {job.attempts}/{job.max_retries + 1})"
            )
        else:
            job.status = JobStatus.FAILED
            job.failed_at = now
            await self.store.save_job(job)
            await self.store.push_failed(job.id)

            self.logger.error(
                f"Job {job.id} permanently failed after {job.attempts} attempts: {message}"
            )

        return job

    async def retry_job(self, job_id: str) -> bool:
        """Re-enqueue a failed job with its attempts reset."""
        job = await self.store.get_job(job_id)
        if job is None or job.status != JobStatus.FAILED:
            return False

        job.status = JobStatus.PENDING
        job.attempts = 0
        job.available_at = self.now()
        job.error = None
        job.failed_at = None

        await self.store.save_job(job)
        await self.store.push_to_queue(job.queue, job.id)
        await self.store.remove_failed(job.id)

        self.logger.info(f"Job {job_id} re-queued for retry on {job.queue}")
        return True

    async def retry_failed_jobs(self) -> int:
        """Retry every job in the failed list; return how many were re-queued."""
        retried = 0
        for job_id in await self.store.get_failed_ids():
            if await self.retry_job(job_id):
                retried += 1
            elif await self.store.get_job(job_id) is None:
                await self.store.remove_failed(job_id)
        if retried:
            self.logger.info(f"Re-queued {retried} failed jobs")
        return retried

    async def cancel_job(self, job_id: str) -> bool:
        """Cancel a job that has not completed."""
        job = await self.store.get_job(job_id)
        if job is None or job.status in (JobStatus.COMPLETED, JobStatus.CANCELLED):
            return False

        await self.store.remove_from_queue(job.queue, job.id)
        if job.status == JobStatus.FAILED:
            await self.store.remove_failed(job.id)

        job.status = JobStatus.CANCELLED
        job.cancelled_at = self.now()
        await self.store.save_job(job)

        self.logger.info(f"Job {job_id} cancelled")
        return True

    async def clear_queues(self) -> int:
        """Empty every known queue list; return how many ids were removed."""
        removed = 0
        for queue in await self.store.known_queues():
            removed += await self.store.clear_queue(queue)
        self.logger.warning(f"Cleared all queues ({removed} jobs removed)")
        return removed

    async def get_queue_stats(self) -> dict[str, Any]:
        """
        Count jobs per queue and status.

        Every id in every queue list is loaded on each call.
        """
        stats: dict[str, Any] = {}

        for queue in await self.store.known_queues():
            job_ids = await self.store.get_queue(queue)
            queue_stats = QueueStats(total=len(job_ids))

            for job_id in job_ids:
                job = await self.store.get_job(job_id)
                if job is None:
                    continue
                if job.status == JobStatus.PENDING:
                    queue_stats.pending += 1
                elif job.status == JobStatus.PROCESSING:
                    queue_stats.processing += 1
                elif job.status == JobStatus.FAILED:
                    queue_stats.failed += 1
                elif job.status == JobStatus.COMPLETED:
                    queue_stats.completed += 1

            stats[queue] = queue_stats.model_dump()

        stats["failed_total"] = len(await self.store.get_failed_ids())
        return stats

    async def list_failed_jobs(self, limit: int = 50) -> list[Job]:
        """Most recently failed jobs first."""
        jobs: list[Job] = []
        for job_id in reversed(await self.store.get_failed_ids()):
            job = await self.store.get_job(job_id)
            if job is not None:
                jobs.append(job)
            if len(jobs) >= limit:
                break
        return jobs
