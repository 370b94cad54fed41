"""
Shared fixtures for unit and integration tests.

Provides:
- An in-memory LogSource serving configurable groups, streams and events
- An in-memory RecordSink that records what it was given
- A rate limiter fast enough to never sleep in tests
"""

from datetime import timedelta

import pytest
from fakes import BASE_TIME, GROUP, FakeLogSource, MemorySink

from podlog_pipeline.cloudwatch import RateLimiter
from podlog_pipeline.config import clear_settings_cache
from podlog_pipeline.schemas import Window


@pytest.fixture
def window() -> Window:
    """One hour window starting at BASE_TIME."""
    return Window(BASE_TIME, BASE_TIME + timedelta(hours=1))


@pytest.fixture
def fake_source() -> FakeLogSource:
    """In-memory LogSource holding the demo group and no streams."""
    return FakeLogSource(groups=[GROUP])


@pytest.fixture
def memory_sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def fast_limiter() -> RateLimiter:
    """Limiter with a bucket too large to run dry in a test."""
    return RateLimiter(rate=100_000)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep tests away from the user's config file, env and home database."""
    for key in ("AWS_PROFILE", "AWS_REGION", "PODLOGS_DB_PATH", "PODLOGS_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    yield
    clear_settings_cache()
