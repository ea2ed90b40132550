"""Delayed-retry job queue on top of a key-value store.

The FastAPI admin router lives in ``kv_jobs.fastapi_router`` and needs the
``fastapi`` extra.
"""

from kv_jobs.config import QueueConfig
from kv_jobs.ddl import KV_TABLE_DDL
from kv_jobs.errors import (
    AuthTokenError,
    InvalidScheduleError,
    JobNotFoundError,
    KvJobsError,
    RemoteHttpError,
    UnknownJobTypeError,
)
from kv_jobs.http_client import QueueHttpClient
from kv_jobs.kv import InMemoryKeyValueStore, KeyValueStore, PostgresKeyValueStore
from kv_jobs.models import Job, JobStatus, QueueStats, ScheduleEntry
from kv_jobs.registry import JobRegistry, JobType, create_default_registry
from kv_jobs.scheduler import Scheduler, run_scheduler_loop
from kv_jobs.service import QueueService
from kv_jobs.store import JobStore
from kv_jobs.worker import Worker, run_worker_loop

__version__ = "0.1.0"

__all__ = [
    "QueueConfig",
    "KV_TABLE_DDL",
    "AuthTokenError",
    "InvalidScheduleError",
    "JobNotFoundError",
    "KvJobsError",
    "RemoteHttpError",
    "UnknownJobTypeError",
    "QueueHttpClient",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "PostgresKeyValueStore",
    "Job",
    "JobStatus",
    "QueueStats",
    "ScheduleEntry",
    "JobRegistry",
    "JobType",
    "create_default_registry",
    "Scheduler",
    "run_scheduler_loop",
    "QueueService",
    "JobStore",
    "Worker",
    "run_worker_loop",
]
