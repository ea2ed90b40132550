"""Data models for jobs and schedules."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_job_id() -> str:
    return f"job_{uuid4().hex}"


def new_schedule_id() -> str:
    return f"schedule_{uuid4().hex}"


class JobStatus(str, Enum):
    """Job status values."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Job(BaseModel):
    """A job record as persisted under ``job:{id}``."""

    id: str = Field(default_factory=new_job_id)
    type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    queue: str
    attempts: int = 0
    max_retries: int = 3
    timeout: int = 300
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    available_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    error: Optional[str] = None

    def is_available(self, now: datetime) -> bool:
        """Whether a worker may pick this job up at ``now``."""
        return self.status == JobStatus.PENDING and self.available_at <= now

    def to_dict(self) -> Dict[str, Any]:
        """Convert job to a JSON-compatible dictionary."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Job":
        return cls.model_validate(data)


class ScheduleEntry(BaseModel):
    """A recurring dispatch definition as persisted under ``schedule:{id}``."""

    id: str = Field(default_factory=new_schedule_id)
    type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    cron: str
    queue: Optional[str] = None
    next_run: datetime
    enabled: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    last_run_at: Optional[datetime] = None

    def is_due(self, now: datetime) -> bool:
        return self.enabled and self.next_run <= now

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduleEntry":
        return cls.model_validate(data)


class QueueStats(BaseModel):
    """Per-queue job counts."""

    total: int = 0
    pending: int = 0
    processing: int = 0
    failed: int = 0
    completed: int = 0
