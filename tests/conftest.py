"""Pytest configuration and fixtures."""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from kv_jobs.config import QueueConfig
from kv_jobs.kv import InMemoryKeyValueStore
from kv_jobs.registry import JobRegistry, create_default_registry
from kv_jobs.service import QueueService


class FakeClock:
    """Controllable clock shared by the service and the in-memory store."""

    def __init__(self, start: datetime = None):
        self.current = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def timestamp(self) -> float:
        return self.current.timestamp()

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    """Config with the stock defaults."""
    return QueueConfig()


@pytest.fixture
def kv(clock):
    return InMemoryKeyValueStore(clock=clock.timestamp)


@pytest.fixture
def registry(config):
    """Registry holding only the built-in job types."""
    return create_default_registry(config)


@pytest.fixture
def empty_registry(config):
    return JobRegistry(config)


@pytest.fixture
def service(config, kv, registry, clock):
    """QueueService over an in-memory store and a fake clock."""
    return QueueService(
        config, kv, registry, logger=logging.getLogger("kv_jobs.tests"), clock=clock
    )


@pytest.fixture
def sample_email_payload():
    """Sample email payload for testing."""
    return {"to": "a@b.com", "subject": "Welcome"}
