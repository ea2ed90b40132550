"""Job type registry."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional, Type

from pydantic import BaseModel

from kv_jobs.config import QueueConfig


@dataclass(frozen=True)
class JobType:
    """Execution metadata for one job type."""

    name: str
    handler: Optional[Callable]
    timeout: int
    max_retries: int
    queue: str
    payload_model: Optional[Type[BaseModel]] = None

    def parse_payload(self, payload: dict[str, Any]) -> Any:
        """Validate a raw payload against the type's payload model, if any."""
        if self.payload_model is None:
            return payload
        return self.payload_model.model_validate(payload)


class JobRegistry:
    """Registry mapping job type names to handlers and defaults."""

    def __init__(self, config: Optional[QueueConfig] = None):
        self.config = config or QueueConfig()
        self._types: dict[str, JobType] = {}

    def register(
        self,
        name: str,
        handler: Optional[Callable] = None,
        *,
        timeout: Optional[int] = None,
        retries: Optional[int] = None,
        queue: Optional[str] = None,
        payload_model: Optional[Type[BaseModel]] = None,
    ) -> JobType:
        """
        Register a job type, replacing any existing entry with the same name.

        Values not given fall back to the config defaults; per-type overrides
        from ``QueueConfig.job_types`` win over both.
        """
        if not name:
            raise ValueError("Job type name is required")

        overrides = self.config.get_job_type_overrides(name)
        job_type = JobType(
            name=name,
            handler=handler,
            timeout=int(
                overrides.get(
                    "timeout", timeout if timeout is not None else self.config.job_timeout
                )
            ),
            max_retries=int(
                overrides.get(
                    "retries", retries if retries is not None else self.config.max_retries
                )
            ),
            queue=overrides.get("queue", queue or self.config.default_queue),
            payload_model=payload_model,
        )
        self._types[name] = job_type
        return job_type

    def handler(self, name: str, **options):
        """
        Decorator to register a job handler.

        Usage:
            @registry.handler("send_report", timeout=120, retries=2)
            async def send_report(ctx, payload):
                ...
        """

        def decorator(func: Callable):
            self.register(name, func, **options)
            return func

        return decorator

    def get(self, name: str) -> Optional[JobType]:
        """Get a job type by name."""
        return self._types.get(name)

    def get_handler(self, name: str) -> Optional[Callable]:
        """Get a handler by job type name."""
        job_type = self._types.get(name)
        return job_type.handler if job_type else None

    def all_types(self) -> dict[str, JobType]:
        """Get all registered job types."""
        return self._types.copy()

    def __contains__(self, name: str) -> bool:
        return name in self._types


def create_default_registry(config: Optional[QueueConfig] = None) -> JobRegistry:
    """Build a registry holding the built-in job types."""
    from kv_jobs.handlers import register_builtin_handlers

    registry = JobRegistry(config)
    register_builtin_handlers(registry)
    return registry
