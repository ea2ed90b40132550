"""Recurring job schedules for kv_jobs."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

from dateutil.relativedelta import relativedelta

from kv_jobs.errors import InvalidScheduleError
from kv_jobs.models import ScheduleEntry
from kv_jobs.service import QueueService

INTERVALS = {
    "hourly": relativedelta(hours=1),
    "daily": relativedelta(days=1),
    "weekly": relativedelta(weeks=1),
    "monthly": relativedelta(months=1),
}


def normalize_cron(cron: str) -> str:
    """Map ``@daily`` / ``daily`` style specs to the canonical ``@daily``."""
    name = (cron or "").strip().lower().lstrip("@")
    if name not in INTERVALS:
        raise InvalidScheduleError(cron)
    return f"@{name}"


def next_run_time(cron: str, now: datetime) -> datetime:
    """Next fire time for a fixed-interval cron string, counted from ``now``."""
    return now + INTERVALS[normalize_cron(cron).lstrip("@")]


class Scheduler:
    """
    Persist recurring dispatch definitions and fire the due ones.

    Only a fixed vocabulary of intervals is supported (hourly, daily, weekly,
    monthly). ``process_scheduled_jobs`` has to be called periodically by the
    host, e.g. through ``run_scheduler_loop``.
    """

    def __init__(self, service: QueueService, logger: Optional[logging.Logger] = None):
        self.service = service
        self.store = service.store
        self.logger = logger or service.logger

    async def schedule(
        self,
        type: str,
        payload: Optional[dict[str, Any]] = None,
        cron: str = "@hourly",
        *,
        queue: Optional[str] = None,
    ) -> ScheduleEntry:
        """Create a schedule entry; the first run is one interval from now."""
        cron = normalize_cron(cron)
        now = self.service.now()
        entry = ScheduleEntry(
            type=type,
            payload=payload or {},
            cron=cron,
            queue=queue,
            next_run=next_run_time(cron, now),
            enabled=True,
            created_at=now,
        )

        await self.store.save_schedule(entry)
        await self.store.add_schedule_id(entry.id)

        self.logger.info(
            f"Scheduled {type} {cron} as {entry.id}, next run at {entry.next_run}"
        )
        return entry

    async def process_scheduled_jobs(self) -> list[str]:
        """
        Dispatch every due schedule and advance its next run time.

        Each scan re-saves the schedule index and every entry, due or not,
        so their ``schedule_ttl`` keeps being refreshed while a scheduler
        runs. Ids whose entry has expired are dropped from the index.
        """
        dispatched: list[str] = []
        expired_ids: list[str] = []

        for schedule_id in await self.store.list_schedule_ids():
            entry = await self.store.get_schedule(schedule_id)
            if entry is None:
                expired_ids.append(schedule_id)
                continue

            now = self.service.now()
            if not entry.is_due(now):
                await self.store.save_schedule(entry)
                continue

            job_id = await self.service.dispatch(
                entry.type, dict(entry.payload), queue=entry.queue
            )
            dispatched.append(job_id)

            entry.last_run_at = now
            entry.next_run = next_run_time(entry.cron, now)
            await self.store.save_schedule(entry)

            self.logger.info(
                f"Schedule {entry.id} dispatched job {job_id}, next run at {entry.next_run}"
            )

        # Re-read so schedules added or removed during the scan are kept as is
        ids = await self.store.list_schedule_ids()
        await self.store.save_schedule_ids([i for i in ids if i not in expired_ids])

        return dispatched

    async def get_schedule(self, schedule_id: str) -> Optional[ScheduleEntry]:
        return await self.store.get_schedule(schedule_id)

    async def list_schedules(self) -> list[ScheduleEntry]:
        entries = []
        for schedule_id in await self.store.list_schedule_ids():
            entry = await self.store.get_schedule(schedule_id)
            if entry is not None:
                entries.append(entry)
        return entries

    async def enable(self, schedule_id: str) -> bool:
        return await self._set_enabled(schedule_id, True)

    async def disable(self, schedule_id: str) -> bool:
        return await self._set_enabled(schedule_id, False)

    async def _set_enabled(self, schedule_id: str, enabled: bool) -> bool:
        entry = await self.store.get_schedule(schedule_id)
        if entry is None:
            return False
        entry.enabled = enabled
        await self.store.save_schedule(entry)
        return True

    async def unschedule(self, schedule_id: str) -> bool:
        """Remove a schedule entry entirely."""
        entry = await self.store.get_schedule(schedule_id)
        await self.store.delete_schedule(schedule_id)
        await self.store.remove_schedule_id(schedule_id)
        return entry is not None


async def run_scheduler_loop(
    scheduler: Scheduler,
    logger: Optional[logging.Logger] = None,
    loop_interval_seconds: Optional[float] = None,
    shutdown_event: Optional[asyncio.Event] = None,
) -> None:
    """
    Periodically fire due schedules.

    Args:
        scheduler: Scheduler instance
        logger: Logger instance
        loop_interval_seconds: Time to sleep between iterations
        shutdown_event: Optional event to signal shutdown
    """
    logger = logger or scheduler.logger
    if loop_interval_seconds is None:
        loop_interval_seconds = scheduler.service.config.scheduler_interval

    logger.info("Starting scheduler loop")

    while True:
        # Check for shutdown signal
        if shutdown_event and shutdown_event.is_set():
            logger.info("Shutdown signal received, exiting scheduler loop")
            break

        try:
            dispatched = await scheduler.process_scheduled_jobs()
            if dispatched:
                logger.info(f"Dispatched {len(dispatched)} scheduled jobs")
        except Exception as e:
            logger.error(f"Error in scheduler loop: {str(e)}", exc_info=True)

        # Sleep before next iteration
        await asyncio.sleep(loop_interval_seconds)
