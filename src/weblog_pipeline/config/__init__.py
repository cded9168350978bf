"""Configuration module."""

from .constants import (
    BATCH_SIZE,
    DEFAULT_CLEANUP_HOUR,
    DEFAULT_RETENTION_DAYS,
    DEFAULT_TASK_INTERVAL_SECONDS,
    LOG_TYPE_JSON,
    LOG_TYPE_NGINX,
    MAX_RECORD_AGE_DAYS,
    SUPPORTED_LOG_TYPES,
)
from .settings import (
    ConfigurationError,
    Settings,
    SiteConfig,
    clear_settings_cache,
    derive_site_id,
    get_settings,
    load_settings_file,
    parse_interval,
)

__all__ = [
    # Ingestion constants
    "BATCH_SIZE",
    "MAX_RECORD_AGE_DAYS",
    "LOG_TYPE_NGINX",
    "LOG_TYPE_JSON",
    "SUPPORTED_LOG_TYPES",
    # Scheduling constants
    "DEFAULT_TASK_INTERVAL_SECONDS",
    "DEFAULT_CLEANUP_HOUR",
    "DEFAULT_RETENTION_DAYS",
    # Settings
    "Settings",
    "SiteConfig",
    "ConfigurationError",
    "get_settings",
    "clear_settings_cache",
    "load_settings_file",
    "parse_interval",
    "derive_site_id",
]
