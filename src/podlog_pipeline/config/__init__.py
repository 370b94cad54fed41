"""Configuration module."""

from .constants import (
    CONTAINER_INSIGHTS_GROUP_PATTERN,
    DEFAULT_MAX_WORKERS,
    EVENT_REQUESTS_PER_SECOND,
    LISTING_REQUESTS_PER_SECOND,
    MAX_LISTING_RESULTS,
    MAX_PAGINATION_DEPTH,
    TABLE_LOGS,
)
from .settings import Settings, SyncSettings, clear_settings_cache, get_settings
from .sops_loader import decrypt_sops_file

__all__ = [
    # API quotas and bounds
    "LISTING_REQUESTS_PER_SECOND",
    "EVENT_REQUESTS_PER_SECOND",
    "MAX_PAGINATION_DEPTH",
    "MAX_LISTING_RESULTS",
    "DEFAULT_MAX_WORKERS",
    "CONTAINER_INSIGHTS_GROUP_PATTERN",
    "TABLE_LOGS",
    # Settings
    "Settings",
    "SyncSettings",
    "get_settings",
    "clear_settings_cache",
    # Config loading
    "decrypt_sops_file",
]
