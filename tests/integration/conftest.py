"""
Shared fixtures for integration tests.

Provides:
- Temporary SQLite database for isolated testing
- Sample log records
"""

from pathlib import Path

import pytest
import pytest_asyncio
from fakes import generate_sample_records

from podlog_pipeline.monitoring import RetryConfig
from podlog_pipeline.schemas import LogRecord
from podlog_pipeline.storage import get_backend

# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Create a temporary database path."""
    return tmp_path / "test_podlogs.db"


@pytest.fixture
def sqlite_backend(temp_db_path: Path):
    """
    Create an initialized SQLite backend with temporary database.

    Automatically cleans up after test.
    """
    backend = get_backend(
        "sqlite",
        db_path=temp_db_path,
        retry_config=RetryConfig(base_delay_seconds=0.001),
    )
    backend.initialize()
    yield backend
    backend.close()


@pytest.fixture
def sample_records() -> list[LogRecord]:
    """Generate 20 sample records for testing."""
    return generate_sample_records(20)


@pytest_asyncio.fixture
async def sqlite_backend_with_data(sqlite_backend, sample_records):
    """
    SQLite backend pre-populated with sample data.

    Returns tuple of (backend, records_inserted).
    """
    for record in sample_records:
        await sqlite_backend.add_log(record)
    return sqlite_backend, len(sample_records)
