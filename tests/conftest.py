"""Pytest configuration and shared fixtures for lokishipper tests."""

from __future__ import annotations

from collections.abc import Generator

import pytest

from lokishipper import logshipper
from lokishipper.config import LokiConfig
from lokishipper.models import LogEntry, LogLevel
from lokishipper.persistence import InMemoryLogPersistence
from lokishipper.resilience import RetryPolicy
from mocks import FakeClock, LokiEndpoint, RecordingTransport

ENDPOINT = "http://loki.test/loki/api/v1/push"


@pytest.fixture
def retry_policy() -> RetryPolicy:
    """Retry policy without delay or jitter, so retries are due immediately."""
    return RetryPolicy(max_retries=3, base_delay=0.0, max_delay=0.0, jitter_factor=0.0)


@pytest.fixture
def persistence() -> InMemoryLogPersistence:
    return InMemoryLogPersistence()


@pytest.fixture
def config(retry_policy: RetryPolicy, persistence: InMemoryLogPersistence) -> LokiConfig:
    """Small buffer configuration used by most buffer tests."""
    return LokiConfig(
        endpoint=ENDPOINT,
        app="TestApp",
        environment="test",
        batch_size=3,
        flush_interval=60.0,
        max_buffer_size=5,
        retry_policy=retry_policy,
        persistence=persistence,
    )


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def endpoint() -> LokiEndpoint:
    return LokiEndpoint()


@pytest.fixture
def sample_entry() -> LogEntry:
    """Return a sample log entry for testing."""
    return LogEntry(
        timestamp=1_700_000_000_000_000_000,
        level=LogLevel.INFO,
        message="Order placed",
        metadata={"currency": "USD", "amount": "99.99"},
    )


@pytest.fixture
def make_entries():
    """Factory for numbered entries: Message 1, Message 2, ..."""

    def _make(count: int, level: LogLevel = LogLevel.INFO, start: int = 1) -> list[LogEntry]:
        return [
            LogEntry(timestamp=1_700_000_000_000_000_000 + i, level=level, message=f"Message {i}")
            for i in range(start, start + count)
        ]

    return _make


@pytest.fixture
def fresh_shared_logger() -> Generator[logshipper.LokiLogger, None, None]:
    """Swap the module-level shared logger for a clean one."""
    original = logshipper.shared
    logshipper.shared = logshipper.LokiLogger()
    try:
        yield logshipper.shared
    finally:
        logshipper.shared.stop()
        logshipper.shared = original
