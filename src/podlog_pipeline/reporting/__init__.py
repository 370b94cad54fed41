"""Reporting module: offline queries over synced logs."""

from .log_queries import LogQueryEngine

__all__ = [
    "LogQueryEngine",
]
