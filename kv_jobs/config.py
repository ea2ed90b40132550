"""Configuration for the kv_jobs queue."""

import json
import os
from typing import Any, Dict, List, Optional

DEFAULT_QUEUES = ["default", "high", "low", "critical"]


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"Invalid integer in {name}: {value!r}") from e


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"Invalid number in {name}: {value!r}") from e


class QueueConfig:
    """Configuration object for the job queue."""

    def __init__(
        self,
        db_dsn: Optional[str] = None,
        default_queue: str = "default",
        queues: Optional[List[str]] = None,
        max_retries: int = 3,
        retry_delay: int = 60,
        max_retry_delay: Optional[int] = None,
        job_timeout: int = 300,
        sleep_time: float = 1.0,
        job_ttl: int = 86400,
        completed_job_ttl: int = 3600,
        queue_ttl: int = 86400,
        failed_job_retention: int = 7 * 24 * 3600,
        failed_jobs_limit: int = 1000,
        schedule_ttl: int = 365 * 86400,
        scheduler_interval: float = 60.0,
        auth_token: Optional[str] = None,
        job_types: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        self.db_dsn = db_dsn
        self.default_queue = default_queue
        self.queues = list(queues) if queues else list(DEFAULT_QUEUES)
        if self.default_queue not in self.queues:
            self.queues.insert(0, self.default_queue)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.max_retry_delay = max_retry_delay
        self.job_timeout = job_timeout
        self.sleep_time = sleep_time
        self.job_ttl = job_ttl
        self.completed_job_ttl = completed_job_ttl
        self.queue_ttl = queue_ttl
        self.failed_job_retention = failed_job_retention
        self.failed_jobs_limit = failed_jobs_limit
        self.schedule_ttl = schedule_ttl
        self.scheduler_interval = scheduler_interval
        self.auth_token = auth_token
        self.job_types = job_types or {}

    @classmethod
    def from_env(cls) -> "QueueConfig":
        """Create config from environment variables."""
        queues_str = os.getenv("KV_JOBS_QUEUES")
        queues = None
        if queues_str:
            queues = [q.strip() for q in queues_str.split(",") if q.strip()]

        max_retry_delay_str = os.getenv("KV_JOBS_MAX_RETRY_DELAY")
        max_retry_delay = None
        if max_retry_delay_str:
            max_retry_delay = _int_env("KV_JOBS_MAX_RETRY_DELAY", 0)

        job_types_str = os.getenv("KV_JOBS_JOB_TYPES")
        job_types = None
        if job_types_str:
            try:
                job_types = json.loads(job_types_str)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON in KV_JOBS_JOB_TYPES: {e}") from e
            if not isinstance(job_types, dict):
                raise ValueError("KV_JOBS_JOB_TYPES must be a JSON object")

        return cls(
            db_dsn=os.getenv("KV_JOBS_DB_DSN") or None,
            default_queue=os.getenv("KV_JOBS_DEFAULT_QUEUE", "default"),
            queues=queues,
            max_retries=_int_env("KV_JOBS_MAX_RETRIES", 3),
            retry_delay=_int_env("KV_JOBS_RETRY_DELAY", 60),
            max_retry_delay=max_retry_delay,
            job_timeout=_int_env("KV_JOBS_JOB_TIMEOUT", 300),
            sleep_time=_float_env("KV_JOBS_SLEEP_TIME", 1.0),
            job_ttl=_int_env("KV_JOBS_JOB_TTL", 86400),
            completed_job_ttl=_int_env("KV_JOBS_COMPLETED_JOB_TTL", 3600),
            queue_ttl=_int_env("KV_JOBS_QUEUE_TTL", 86400),
            failed_job_retention=_int_env(
                "KV_JOBS_FAILED_JOB_RETENTION", 7 * 24 * 3600
            ),
            failed_jobs_limit=_int_env("KV_JOBS_FAILED_JOBS_LIMIT", 1000),
            schedule_ttl=_int_env("KV_JOBS_SCHEDULE_TTL", 365 * 86400),
            scheduler_interval=_float_env("KV_JOBS_SCHEDULER_INTERVAL", 60.0),
            auth_token=os.getenv("KV_JOBS_AUTH_TOKEN") or None,
            job_types=job_types,
        )

    def backoff_policy(self) -> Dict[str, Any]:
        """Get the retry backoff policy derived from this config."""
        policy: Dict[str, Any] = {
            "type": "exponential",
            "base_seconds": self.retry_delay,
        }
        if self.max_retry_delay is not None:
            policy["max_seconds"] = self.max_retry_delay
        return policy

    def get_job_type_overrides(self, job_type: str) -> Dict[str, Any]:
        """Get configured overrides (timeout, retries, queue) for a job type."""
        return dict(self.job_types.get(job_type, {}))
