"""
Storage backend factory.

Provides factory function to create the SQLite record sink.
"""

import logging
from pathlib import Path
from typing import Optional

from .base import RecordSink, StorageError

logger = logging.getLogger(__name__)

# Registry of available backends
_BACKEND_REGISTRY: dict[str, type[RecordSink]] = {}


def register_backend(backend_type: str, backend_class: type[RecordSink]) -> None:
    """
    Register a storage backend class.

    Args:
        backend_type: Backend identifier (e.g., 'sqlite')
        backend_class: Class implementing RecordSink interface
    """
    _BACKEND_REGISTRY[backend_type.lower()] = backend_class
    logger.debug(f"Registered storage backend: {backend_type}")


def get_backend(
    backend_type: Optional[str] = None,
    **kwargs,
) -> RecordSink:
    """
    Get a storage backend instance based on configuration.

    Args:
        backend_type: Backend type ('sqlite').
                      If None, loads from settings.
        **kwargs: Additional arguments passed to backend constructor.
                  For SQLite: db_path, timeout, retry_config

    Returns:
        RecordSink instance (call initialize() before use).

    Raises:
        StorageError: If backend type is not supported or creation fails.

    Examples:
        # Get backend from settings
        backend = get_backend()

        # Explicitly request SQLite
        backend = get_backend('sqlite', db_path='/tmp/podlogs.db')
    """
    if backend_type is None:
        from ..config.settings import get_settings

        backend_type = get_settings().storage_backend

    backend_type = backend_type.lower()

    # Lazy-load backend implementations
    if backend_type not in _BACKEND_REGISTRY:
        _load_backend(backend_type)

    if backend_type not in _BACKEND_REGISTRY:
        available = list(_BACKEND_REGISTRY.keys()) if _BACKEND_REGISTRY else ["none"]
        raise StorageError(
            f"Unknown storage backend: '{backend_type}'. "
            f"Available backends: {', '.join(available)}"
        )

    backend_class = _BACKEND_REGISTRY[backend_type]

    if not kwargs:
        kwargs = _get_default_kwargs(backend_type)

    try:
        backend = backend_class(**kwargs)
    except (OSError, TypeError, ValueError) as e:
        raise StorageError(f"Failed to create {backend_type} backend: {e}") from e

    logger.info(f"Created {backend_type} storage backend")
    return backend


def _load_backend(backend_type: str) -> None:
    """
    Lazy-load a backend implementation.

    Args:
        backend_type: Backend type to load
    """
    if backend_type == "sqlite":
        from .sqlite_backend import SQLiteBackend

        register_backend("sqlite", SQLiteBackend)


def _get_default_kwargs(backend_type: str) -> dict:
    """
    Get default constructor arguments from settings.

    Args:
        backend_type: Backend type

    Returns:
        Dictionary of constructor arguments
    """
    from ..config.settings import get_settings
    from ..monitoring.retry_handler import RetryConfig

    settings = get_settings()

    if backend_type == "sqlite":
        return {
            "db_path": Path(settings.sqlite_db_path).expanduser(),
            "retry_config": RetryConfig(
                max_attempts=settings.sync.storage_max_attempts,
                base_delay_seconds=settings.sync.storage_base_delay_ms / 1000,
            ),
        }
    return {}


def list_available_backends() -> list[str]:
    """
    List all registered backend types.

    Returns:
        List of backend type identifiers.
    """
    for backend_type in ["sqlite"]:
        if backend_type not in _BACKEND_REGISTRY:
            _load_backend(backend_type)

    return list(_BACKEND_REGISTRY.keys())
