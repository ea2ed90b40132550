"""Unit tests for models module."""

from datetime import datetime, timedelta, timezone

from kv_jobs.models import Job, JobStatus, ScheduleEntry


NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_job_defaults():
    job = Job(type="email", queue="default")

    assert job.id.startswith("job_")
    assert job.status == JobStatus.PENDING
    assert job.attempts == 0
    assert job.payload == {}
    assert job.error is None
    assert job.created_at.tzinfo is not None


def test_job_round_trip_through_dict():
    job = Job(
        type="export",
        queue="low",
        payload={"entity": "users"},
        created_at=NOW,
        available_at=NOW + timedelta(seconds=30),
        attempts=2,
        error="boom",
    )

    data = job.to_dict()
    assert data["status"] == "pending"
    assert isinstance(data["available_at"], str)

    restored = Job.from_dict(data)
    assert restored.available_at == job.available_at
    assert restored.status == JobStatus.PENDING
    assert restored.error == "boom"


def test_job_is_available():
    job = Job(type="email", queue="default", available_at=NOW)

    assert job.is_available(NOW)
    assert not job.is_available(NOW - timedelta(seconds=1))

    job.status = JobStatus.PROCESSING
    assert not job.is_available(NOW)


def test_schedule_entry_is_due():
    entry = ScheduleEntry(type="cleanup", cron="@hourly", next_run=NOW)

    assert entry.id.startswith("schedule_")
    assert entry.is_due(NOW)
    assert not entry.is_due(NOW - timedelta(minutes=1))

    entry.enabled = False
    assert not entry.is_due(NOW)
