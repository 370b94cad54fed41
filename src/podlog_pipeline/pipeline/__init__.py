"""Sync pipeline module for the SQLite backend."""

from .sync_pipeline import SyncPipeline, SyncResult, setup_logging, sync_logs
from .worker_pool import WorkerPool

__all__ = [
    # Sync pipeline
    "SyncPipeline",
    "SyncResult",
    "sync_logs",
    "setup_logging",
    # Concurrency
    "WorkerPool",
]
