"""
Offline queries over synced container logs.

Reads go through the record store's busy retry, so they can run while a
sync is writing to the same database file.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..schemas import LogRecord, Window
from ..storage import RecordSink, get_backend

logger = logging.getLogger(__name__)


class LogQueryEngine:
    """
    Query engine for synced logs.

    Example:
        with LogQueryEngine(db_path="~/.podlogs.db") as engine:
            records = engine.query("staging", group, "api", begin, end)
    """

    def __init__(
        self,
        backend: Optional[RecordSink] = None,
        backend_type: str = "sqlite",
        db_path: Optional[Path | str] = None,
    ):
        """
        Initialize the query engine.

        Args:
            backend: Pre-initialized RecordSink (optional)
            backend_type: Backend type if creating new ('sqlite')
            db_path: Path to SQLite database (for sqlite backend)
        """
        if backend:
            self._backend = backend
            self._owns_backend = False
        else:
            kwargs = {}
            if backend_type == "sqlite" and db_path:
                kwargs["db_path"] = Path(db_path).expanduser()
            self._backend = get_backend(backend_type, **kwargs)
            self._owns_backend = True

        self._initialized = False

    def initialize(self) -> None:
        """Initialize the backend."""
        if not self._initialized:
            self._backend.initialize()
            self._initialized = True

    def close(self) -> None:
        """Close the backend connection."""
        if self._owns_backend:
            self._backend.close()

    def __enter__(self) -> "LogQueryEngine":
        """Context manager entry."""
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()

    def query(
        self,
        profile: str,
        group: str,
        pod_substring: str,
        begin: datetime,
        end: datetime,
    ) -> list[LogRecord]:
        """
        Return stored records, oldest first.

        Args:
            profile: Exact AWS profile the records were synced with
            group: Exact log group name
            pod_substring: Substring of the pod name ('' matches all pods)
            begin: Window start (inclusive, timezone-aware)
            end: Window end (inclusive, timezone-aware)

        Raises:
            ValueError: If begin is after end or either is naive
            StorageExhaustedError: If the database stayed locked
        """
        window = Window(begin, end)
        self.initialize()
        records = self._backend.query_logs(
            profile, group, pod_substring, window.start, window.end
        )
        logger.debug(
            f"Query {group} ({profile or 'default'}) pods '{pod_substring}': "
            f"{len(records)} records"
        )
        return records
