"""Tests for recurring schedules."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from kv_jobs.errors import InvalidScheduleError
from kv_jobs.models import JobStatus
from kv_jobs.scheduler import (
    Scheduler,
    next_run_time,
    normalize_cron,
    run_scheduler_loop,
)


@pytest.fixture
def scheduler(service):
    return Scheduler(service)


def test_normalize_cron():
    assert normalize_cron("@daily") == "@daily"
    assert normalize_cron("weekly") == "@weekly"
    assert normalize_cron(" @Hourly ") == "@hourly"


@pytest.mark.parametrize("cron", ["*/5 * * * *", "@yearly", "", "now"])
def test_normalize_cron_rejects_unsupported(cron):
    with pytest.raises(InvalidScheduleError):
        normalize_cron(cron)


def test_next_run_time_intervals():
    now = datetime(2024, 1, 31, 10, 0, tzinfo=timezone.utc)

    assert next_run_time("@hourly", now) == datetime(2024, 1, 31, 11, 0, tzinfo=timezone.utc)
    assert next_run_time("@daily", now) == datetime(2024, 2, 1, 10, 0, tzinfo=timezone.utc)
    assert next_run_time("@weekly", now) == datetime(2024, 2, 7, 10, 0, tzinfo=timezone.utc)
    # Calendar month, clamped to the end of February
    assert next_run_time("@monthly", now) == datetime(2024, 2, 29, 10, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_schedule_persists_entry(scheduler, service, clock):
    entry = await scheduler.schedule("cleanup", {"type": "cache"}, "@daily")

    stored = await scheduler.get_schedule(entry.id)
    assert stored.to_dict() == entry.to_dict()
    assert stored.enabled is True
    assert stored.next_run == next_run_time("@daily", clock())
    assert await service.store.list_schedule_ids() == [entry.id]


@pytest.mark.asyncio
async def test_schedule_rejects_unknown_interval(scheduler, service):
    with pytest.raises(InvalidScheduleError):
        await scheduler.schedule("cleanup", {}, "every tuesday")
    assert await service.store.list_schedule_ids() == []


@pytest.mark.asyncio
async def test_process_scheduled_jobs_only_fires_due_entries(scheduler, service, clock):
    hourly = await scheduler.schedule("cleanup", {"type": "cache"}, "@hourly")
    await scheduler.schedule("export", {"entity": "users"}, "@daily")

    assert await scheduler.process_scheduled_jobs() == []

    clock.advance(3600)
    dispatched = await scheduler.process_scheduled_jobs()

    assert len(dispatched) == 1
    job = await service.get_job_status(dispatched[0])
    assert job.type == "cleanup"
    assert job.payload == {"type": "cache"}
    assert job.status == JobStatus.PENDING

    entry = await scheduler.get_schedule(hourly.id)
    assert entry.last_run_at == clock()
    assert entry.next_run == next_run_time("@hourly", clock())

    # Not due again until another hour passes
    assert await scheduler.process_scheduled_jobs() == []


@pytest.mark.asyncio
async def test_process_scheduled_jobs_uses_entry_queue(scheduler, service, clock):
    await scheduler.schedule("email", {"to": "ops@example.com"}, "@hourly", queue="high")
    clock.advance(3600)

    dispatched = await scheduler.process_scheduled_jobs()

    assert (await service.get_job_status(dispatched[0])).queue == "high"


@pytest.mark.asyncio
async def test_disabled_schedule_is_skipped(scheduler, clock):
    entry = await scheduler.schedule("cleanup", {}, "@hourly")
    assert await scheduler.disable(entry.id) is True

    clock.advance(7200)
    assert await scheduler.process_scheduled_jobs() == []

    assert await scheduler.enable(entry.id) is True
    assert len(await scheduler.process_scheduled_jobs()) == 1


@pytest.mark.asyncio
async def test_enable_missing_schedule(scheduler):
    assert await scheduler.enable("schedule_missing") is False


@pytest.mark.asyncio
async def test_unschedule(scheduler, clock):
    entry = await scheduler.schedule("cleanup", {}, "@hourly")

    assert await scheduler.unschedule(entry.id) is True
    assert await scheduler.list_schedules() == []

    clock.advance(3600)
    assert await scheduler.process_scheduled_jobs() == []


@pytest.mark.asyncio
async def test_list_schedules(scheduler):
    first = await scheduler.schedule("cleanup", {}, "@hourly")
    second = await scheduler.schedule("export", {}, "monthly")

    assert [e.id for e in await scheduler.list_schedules()] == [first.id, second.id]


@pytest.mark.asyncio
async def test_scans_keep_schedules_alive_past_ttl(scheduler, service, clock):
    service.config.schedule_ttl = 2 * 3600
    daily = await scheduler.schedule("cleanup", {}, "@daily")
    paused = await scheduler.schedule("export", {}, "@hourly")
    await scheduler.disable(paused.id)

    dispatched = []
    for _ in range(26):
        clock.advance(3600)
        dispatched.extend(await scheduler.process_scheduled_jobs())

    assert len(dispatched) == 1
    assert [e.id for e in await scheduler.list_schedules()] == [daily.id, paused.id]
    assert (await scheduler.get_schedule(paused.id)).enabled is False


@pytest.mark.asyncio
async def test_scan_drops_expired_schedule_ids(scheduler, service):
    entry = await scheduler.schedule("cleanup", {}, "@hourly")
    await service.store.add_schedule_id("schedule_gone")

    await scheduler.process_scheduled_jobs()

    assert await service.store.list_schedule_ids() == [entry.id]

@pytest.mark.asyncio
async def test_run_scheduler_loop_exits_on_shutdown(scheduler):
    shutdown_event = asyncio.Event()

    async def fake_sleep(seconds):
        shutdown_event.set()

    with patch.object(
        scheduler, "process_scheduled_jobs", new=AsyncMock(return_value=["job_1"])
    ) as mock_process:
        with patch("kv_jobs.scheduler.asyncio.sleep", side_effect=fake_sleep):
            await run_scheduler_loop(
                scheduler, loop_interval_seconds=5, shutdown_event=shutdown_event
            )

    mock_process.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_scheduler_loop_logs_errors(scheduler):
    shutdown_event = asyncio.Event()

    async def fake_sleep(seconds):
        shutdown_event.set()

    with patch.object(
        scheduler,
        "process_scheduled_jobs",
        new=AsyncMock(side_effect=RuntimeError("store down")),
    ):
        with patch("kv_jobs.scheduler.asyncio.sleep", side_effect=fake_sleep):
            await run_scheduler_loop(
                scheduler, loop_interval_seconds=5, shutdown_event=shutdown_event
            )
