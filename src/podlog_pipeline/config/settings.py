"""
Application settings and configuration management.

Supports loading from:
1. SOPS-encrypted YAML files (config.enc.yaml)
2. Environment variables (fallback)
"""

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from .constants import (
    DEFAULT_DB_FILENAME,
    DEFAULT_MAX_WORKERS,
    DEFAULT_STORAGE_BASE_DELAY_MS,
    DEFAULT_STORAGE_MAX_ATTEMPTS,
    EVENT_REQUESTS_PER_SECOND,
    LISTING_REQUESTS_PER_SECOND,
    MAX_LISTING_RESULTS,
    MAX_PAGINATION_DEPTH,
)

logger = logging.getLogger(__name__)


def default_db_path() -> str:
    """Return the default database location in the user's home directory."""
    return str(Path.home() / DEFAULT_DB_FILENAME)


def _safe_int(key: str, default: int) -> int:
    """Safely parse int from env var, using default on error."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def _safe_float(key: str, default: float) -> float:
    """Safely parse float from env var, using default on error."""
    try:
        return float(os.environ.get(key, str(default)))
    except ValueError:
        return default


def _safe_bool(key: str, default: bool) -> bool:
    """Safely parse bool from env var."""
    return os.environ.get(key, str(default).lower()).lower() == "true"


# =============================================================================
# Sync Engine Settings
# =============================================================================


@dataclass
class SyncSettings:
    """
    Configuration for the CloudWatch to SQLite sync engine.

    Rates are per second and match the CloudWatch Logs quotas for each API
    category. The worker count is sized to the single-writer SQLite store:
    upstream calls are already gated by the rate limiters.
    """

    max_workers: int = DEFAULT_MAX_WORKERS
    listing_rate: float = LISTING_REQUESTS_PER_SECOND
    event_rate: float = EVENT_REQUESTS_PER_SECOND
    max_pagination_depth: int = MAX_PAGINATION_DEPTH
    max_listing_results: int = MAX_LISTING_RESULTS

    # Busy retry for the SQLite writer
    storage_max_attempts: int = DEFAULT_STORAGE_MAX_ATTEMPTS
    storage_base_delay_ms: int = DEFAULT_STORAGE_BASE_DELAY_MS

    # Purge the window before syncing it again
    replace_existing: bool = True

    def validate(self) -> list[str]:
        """Validate settings values. Returns list of errors."""
        errors = []

        if self.max_workers < 1:
            errors.append(f"max_workers must be >= 1, got {self.max_workers}")
        if self.listing_rate <= 0:
            errors.append(f"listing_rate must be > 0, got {self.listing_rate}")
        if self.event_rate <= 0:
            errors.append(f"event_rate must be > 0, got {self.event_rate}")
        if self.max_pagination_depth < 1:
            errors.append(
                f"max_pagination_depth must be >= 1, got {self.max_pagination_depth}"
            )
        if self.max_listing_results < 1:
            errors.append(
                f"max_listing_results must be >= 1, got {self.max_listing_results}"
            )
        if self.storage_max_attempts < 1:
            errors.append(
                f"storage_max_attempts must be >= 1, got {self.storage_max_attempts}"
            )
        if self.storage_base_delay_ms < 0:
            errors.append(
                f"storage_base_delay_ms must be >= 0, got {self.storage_base_delay_ms}"
            )

        return errors

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "max_workers": self.max_workers,
            "listing_rate": self.listing_rate,
            "event_rate": self.event_rate,
            "max_pagination_depth": self.max_pagination_depth,
            "max_listing_results": self.max_listing_results,
            "storage_max_attempts": self.storage_max_attempts,
            "storage_base_delay_ms": self.storage_base_delay_ms,
            "replace_existing": self.replace_existing,
        }

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "SyncSettings":
        """Create from configuration dictionary."""
        return cls(
            max_workers=config.get("max_workers", DEFAULT_MAX_WORKERS),
            listing_rate=config.get("listing_rate", LISTING_REQUESTS_PER_SECOND),
            event_rate=config.get("event_rate", EVENT_REQUESTS_PER_SECOND),
            max_pagination_depth=config.get(
                "max_pagination_depth", MAX_PAGINATION_DEPTH
            ),
            max_listing_results=config.get("max_listing_results", MAX_LISTING_RESULTS),
            storage_max_attempts=config.get(
                "storage_max_attempts", DEFAULT_STORAGE_MAX_ATTEMPTS
            ),
            storage_base_delay_ms=config.get(
                "storage_base_delay_ms", DEFAULT_STORAGE_BASE_DELAY_MS
            ),
            replace_existing=config.get("replace_existing", True),
        )

    @classmethod
    def from_env(cls) -> "SyncSettings":
        """Create from environment variables."""
        return cls(
            max_workers=_safe_int("PODLOGS_SYNC_MAX_WORKERS", DEFAULT_MAX_WORKERS),
            listing_rate=_safe_float(
                "PODLOGS_SYNC_LISTING_RATE", LISTING_REQUESTS_PER_SECOND
            ),
            event_rate=_safe_float("PODLOGS_SYNC_EVENT_RATE", EVENT_REQUESTS_PER_SECOND),
            max_pagination_depth=_safe_int(
                "PODLOGS_SYNC_MAX_PAGINATION_DEPTH", MAX_PAGINATION_DEPTH
            ),
            max_listing_results=_safe_int(
                "PODLOGS_SYNC_MAX_LISTING_RESULTS", MAX_LISTING_RESULTS
            ),
            storage_max_attempts=_safe_int(
                "PODLOGS_SYNC_STORAGE_MAX_ATTEMPTS", DEFAULT_STORAGE_MAX_ATTEMPTS
            ),
            storage_base_delay_ms=_safe_int(
                "PODLOGS_SYNC_STORAGE_BASE_DELAY_MS", DEFAULT_STORAGE_BASE_DELAY_MS
            ),
            replace_existing=_safe_bool("PODLOGS_SYNC_REPLACE_EXISTING", True),
        )


# =============================================================================
# Main Settings
# =============================================================================


@dataclass
class Settings:
    """Application settings for the SQLite backend and the AWS connection."""

    # Storage Backend Settings
    storage_backend: str = "sqlite"
    sqlite_db_path: str = field(default_factory=default_db_path)

    # AWS Settings (credentials themselves are resolved by boto3)
    aws_profile: str = ""
    aws_region: str = ""

    log_level: str = "INFO"

    # Sync engine
    sync: SyncSettings = field(default_factory=SyncSettings)

    def validate(self) -> list[str]:
        """Validate required settings are present. Returns list of errors."""
        errors = []

        if self.storage_backend != "sqlite":
            errors.append("Only SQLite backend is supported in this version")

        if not self.sqlite_db_path:
            errors.append("storage.sqlite_db_path is required")

        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            errors.append(f"Invalid log_level: {self.log_level}")

        # Validate nested settings
        errors.extend(self.sync.validate())

        return errors

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "Settings":
        """Create Settings from configuration dictionary (e.g., from SOPS)."""
        storage = config.get("storage", {})
        aws = config.get("aws", {})
        sync = config.get("sync", {})

        return cls(
            storage_backend=storage.get("backend", "sqlite"),
            sqlite_db_path=storage.get("sqlite_db_path", default_db_path()),
            aws_profile=aws.get("profile", ""),
            aws_region=aws.get("region", ""),
            log_level=config.get("log_level", "INFO"),
            sync=SyncSettings.from_dict(sync),
        )

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings from environment variables."""
        return cls(
            storage_backend="sqlite",
            sqlite_db_path=os.environ.get("PODLOGS_DB_PATH", default_db_path()),
            aws_profile=os.environ.get("AWS_PROFILE", ""),
            aws_region=os.environ.get("AWS_REGION", ""),
            log_level=os.environ.get("PODLOGS_LOG_LEVEL", "INFO"),
            sync=SyncSettings.from_env(),
        )


# Default config file path
DEFAULT_CONFIG_PATH = Path("config.enc.yaml")


@lru_cache
def get_settings(config_path: Optional[str] = None) -> Settings:
    """
    Get cached settings instance.

    Loads from SOPS-encrypted config file if available, otherwise from env vars.

    Args:
        config_path: Optional path to SOPS-encrypted config file

    Returns:
        Settings instance
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if path.exists():
        try:
            from .sops_loader import decrypt_sops_file

            config = decrypt_sops_file(path)
            return Settings.from_dict(config)
        except RuntimeError as e:
            logger.warning(
                f"Failed to load SOPS config from {path}: {e}. "
                f"Falling back to environment variables"
            )

    return Settings.from_env()


def clear_settings_cache() -> None:
    """Clear the cached settings (useful for testing)."""
    get_settings.cache_clear()
