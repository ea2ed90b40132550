"""Key layout for jobs, queues and schedules on top of a key-value store."""

from typing import Optional

from kv_jobs.config import QueueConfig
from kv_jobs.kv import KeyValueStore
from kv_jobs.models import Job, JobStatus, ScheduleEntry

QUEUES_KEY = "queues"
FAILED_JOBS_KEY = "failed_jobs"
SCHEDULES_KEY = "schedules"


def job_key(job_id: str) -> str:
    return f"job:{job_id}"


def queue_key(queue: str) -> str:
    return f"queue:{queue}"


def schedule_key(schedule_id: str) -> str:
    return f"schedule:{schedule_id}"


def _empty_list() -> list:
    return []


class JobStore:
    """Typed access to job records, queue lists and schedules."""

    def __init__(self, kv: KeyValueStore, config: QueueConfig):
        self.kv = kv
        self.config = config

    # Job records

    async def get_job(self, job_id: str) -> Optional[Job]:
        """Get a job record, or None if it is missing or expired."""
        data = await self.kv.get(job_key(job_id))
        if not data:
            return None
        return Job.from_dict(data)

    async def save_job(self, job: Job, ttl_seconds: Optional[int] = None) -> None:
        """Persist a job record.

        Terminal success states (completed, cancelled) are kept for the
        shorter ``completed_job_ttl`` unless a TTL is given.
        """
        if ttl_seconds is None:
            if job.status in (JobStatus.COMPLETED, JobStatus.CANCELLED):
                ttl_seconds = self.config.completed_job_ttl
            else:
                ttl_seconds = self.config.job_ttl
        await self.kv.set(job_key(job.id), job.to_dict(), ttl_seconds)

    # Queue lists

    async def get_queue(self, queue: str) -> list[str]:
        return await self.kv.get(queue_key(queue), _empty_list)

    async def save_queue(self, queue: str, job_ids: list[str]) -> None:
        await self.kv.set(queue_key(queue), list(job_ids), self.config.queue_ttl)

    async def push_to_queue(self, queue: str, job_id: str) -> None:
        job_ids = await self.get_queue(queue)
        job_ids.append(job_id)
        await self.save_queue(queue, job_ids)
        await self._remember_queue(queue)

    async def remove_from_queue(self, queue: str, job_id: str) -> bool:
        """Remove every occurrence of ``job_id``; return whether any was found."""
        job_ids = await self.get_queue(queue)
        remaining = [i for i in job_ids if i != job_id]
        if len(remaining) == len(job_ids):
            return False
        await self.save_queue(queue, remaining)
        return True

    async def clear_queue(self, queue: str) -> int:
        job_ids = await self.get_queue(queue)
        await self.kv.delete(queue_key(queue))
        return len(job_ids)

    async def known_queues(self) -> list[str]:
        """Configured queues followed by any other queue seen at dispatch."""
        seen = await self.kv.get(QUEUES_KEY, _empty_list)
        queues = list(self.config.queues)
        for name in seen:
            if name not in queues:
                queues.append(name)
        return queues

    async def _remember_queue(self, queue: str) -> None:
        """Record a custom queue name, refreshing the index TTL on every push."""
        if queue in self.config.queues:
            return
        seen = await self.kv.get(QUEUES_KEY, _empty_list)
        if queue not in seen:
            seen.append(queue)
        await self.kv.set(QUEUES_KEY, seen, self.config.queue_ttl)

    # Failed jobs list

    async def get_failed_ids(self) -> list[str]:
        return await self.kv.get(FAILED_JOBS_KEY, _empty_list)

    async def push_failed(self, job_id: str) -> None:
        """Append to the failed list, dropping the oldest ids past the cap."""
        failed = [i for i in await self.get_failed_ids() if i != job_id]
        failed.append(job_id)
        limit = self.config.failed_jobs_limit
        if len(failed) > limit:
            failed = failed[-limit:]
        await self.kv.set(FAILED_JOBS_KEY, failed, self.config.failed_job_retention)

    async def remove_failed(self, job_id: str) -> bool:
        failed = await self.get_failed_ids()
        remaining = [i for i in failed if i != job_id]
        if len(remaining) == len(failed):
            return False
        await self.kv.set(
            FAILED_JOBS_KEY, remaining, self.config.failed_job_retention
        )
        return True

    # Schedules

    async def get_schedule(self, schedule_id: str) -> Optional[ScheduleEntry]:
        data = await self.kv.get(schedule_key(schedule_id))
        if not data:
            return None
        return ScheduleEntry.from_dict(data)

    async def save_schedule(self, entry: ScheduleEntry) -> None:
        await self.kv.set(
            schedule_key(entry.id), entry.to_dict(), self.config.schedule_ttl
        )

    async def delete_schedule(self, schedule_id: str) -> None:
        await self.kv.delete(schedule_key(schedule_id))

    async def list_schedule_ids(self) -> list[str]:
        return await self.kv.get(SCHEDULES_KEY, _empty_list)

    async def save_schedule_ids(self, ids: list[str]) -> None:
        await self.kv.set(SCHEDULES_KEY, list(ids), self.config.schedule_ttl)

    async def add_schedule_id(self, schedule_id: str) -> None:
        ids = await self.list_schedule_ids()
        if schedule_id not in ids:
            ids.append(schedule_id)
            await self.kv.set(SCHEDULES_KEY, ids, self.config.schedule_ttl)

    async def remove_schedule_id(self, schedule_id: str) -> None:
        ids = await self.list_schedule_ids()
        if schedule_id in ids:
            ids.remove(schedule_id)
            await self.kv.set(SCHEDULES_KEY, ids, self.config.schedule_ttl)
