"""
Application settings and configuration management.

Supports loading from:
1. A YAML configuration file (config.yaml)
2. Environment variables (fallback)
"""

import hashlib
import logging
import os
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from .constants import (
    DEFAULT_CLEANUP_HOUR,
    DEFAULT_LOG_BACKUP_COUNT,
    DEFAULT_LOG_MAX_BYTES,
    DEFAULT_LOG_TYPE,
    DEFAULT_RETENTION_DAYS,
    DEFAULT_SHUTDOWN_GRACE_SECONDS,
    DEFAULT_TASK_INTERVAL_SECONDS,
    SCAN_STATE_FILENAME,
    SUPPORTED_LOG_TYPES,
)

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when settings or site configuration are invalid."""

    pass


# =============================================================================
# Interval Parsing
# =============================================================================

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def parse_interval(
    value: Union[str, int, float, None],
    default: float = DEFAULT_TASK_INTERVAL_SECONDS,
) -> float:
    """
    Parse a task interval into seconds.

    Accepts plain numbers (seconds) or duration strings such as
    "30s", "5m", "1h30m".

    Args:
        value: Raw interval value from configuration
        default: Value used when the input is missing or invalid

    Returns:
        Interval in seconds (always positive)

    Examples:
        >>> parse_interval("5m")
        300.0
        >>> parse_interval("1h30m")
        5400.0
        >>> parse_interval("soon", default=60)
        60
    """
    if value is None or value == "":
        return default

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = float(value)
    else:
        text = str(value).strip().lower()
        try:
            seconds = float(text)
        except ValueError:
            parts = _DURATION_PART.findall(text)
            if not parts or "".join(n + u for n, u in parts) != text:
                logger.warning(f"Invalid task interval {value!r}, using {default}s")
                return default
            seconds = sum(float(n) * _DURATION_UNITS[u] for n, u in parts)

    if seconds <= 0:
        logger.warning(f"Task interval must be positive, got {value!r}; using {default}s")
        return default
    return seconds


# =============================================================================
# Site Configuration
# =============================================================================


def derive_site_id(name: str) -> str:
    """Derive a stable short identifier from a site name."""
    return hashlib.md5(name.encode("utf-8")).hexdigest()[:8]


@dataclass(frozen=True)
class SiteConfig:
    """
    A monitored website.

    Attributes:
        id: Site identifier (keys scan state and stored rows)
        name: Display name
        log_path: Access log path; may contain a '*' wildcard
        log_type: 'nginx' (combined format) or 'json' (line-delimited JSON)
    """

    id: str
    name: str
    log_path: str
    log_type: str = DEFAULT_LOG_TYPE

    def __post_init__(self):
        if not self.id:
            raise ConfigurationError(f"Site {self.name!r} has an empty id")
        if not self.log_path:
            raise ConfigurationError(f"Site {self.name!r} has no log path")
        if self.log_type not in SUPPORTED_LOG_TYPES:
            raise ConfigurationError(
                f"Site {self.name!r} has unsupported log type {self.log_type!r}. "
                f"Must be one of: {', '.join(sorted(SUPPORTED_LOG_TYPES))}"
            )

    @property
    def is_pattern(self) -> bool:
        """True when log_path is a glob pattern."""
        return "*" in self.log_path

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "logPath": self.log_path,
            "logType": self.log_type,
        }

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "SiteConfig":
        """Create from a 'websites' entry (camelCase or snake_case keys)."""
        name = str(config.get("name", "")).strip()
        if not name:
            raise ConfigurationError(f"Website entry without a name: {config!r}")
        log_path = config.get("logPath", config.get("log_path", ""))
        log_type = config.get("logType", config.get("log_type")) or DEFAULT_LOG_TYPE
        site_id = config.get("id") or derive_site_id(name)
        return cls(
            id=str(site_id),
            name=name,
            log_path=str(log_path),
            log_type=str(log_type).lower(),
        )


# =============================================================================
# Main Settings
# =============================================================================


@dataclass
class Settings:
    """Service settings."""

    # HTTP server
    server_host: str = "0.0.0.0"
    server_port: int = 9523

    # System
    data_dir: str = "data"
    task_interval_seconds: float = DEFAULT_TASK_INTERVAL_SECONDS
    log_file: Optional[str] = "data/weblog-pipeline.log"
    log_level: str = "INFO"
    log_max_bytes: int = DEFAULT_LOG_MAX_BYTES
    log_backup_count: int = DEFAULT_LOG_BACKUP_COUNT
    cleanup_hour: int = DEFAULT_CLEANUP_HOUR
    cleanup_on_startup: bool = True
    retention_days: int = DEFAULT_RETENTION_DAYS
    shutdown_grace_seconds: float = DEFAULT_SHUTDOWN_GRACE_SECONDS

    # Storage Backend Settings
    storage_backend: str = "sqlite"
    sqlite_db_path: str = "data/weblog.db"

    # Monitored sites, in configuration order
    websites: list[SiteConfig] = field(default_factory=list)

    # CIDR -> {"domestic": ..., "global": ...} geo label overrides
    geo_networks: dict[str, dict[str, str]] = field(default_factory=dict)

    @property
    def scan_state_path(self) -> Path:
        """Location of the scan state file."""
        return Path(self.data_dir) / SCAN_STATE_FILENAME

    def get_site(self, site_id: str) -> Optional[SiteConfig]:
        """Look up a site by identifier."""
        for site in self.websites:
            if site.id == site_id:
                return site
        return None

    def validate(self) -> list[str]:
        """Validate settings values. Returns list of errors."""
        errors = []

        if self.storage_backend != "sqlite":
            errors.append("Only SQLite backend is supported in this version")

        if not 0 <= self.cleanup_hour <= 23:
            errors.append(f"cleanup_hour must be 0-23, got {self.cleanup_hour}")

        if self.retention_days < 1:
            errors.append(f"retention_days must be >= 1, got {self.retention_days}")

        if not 0 < self.server_port < 65536:
            errors.append(f"server port out of range: {self.server_port}")

        seen_ids = set()
        for site in self.websites:
            if site.id in seen_ids:
                errors.append(f"Duplicate website id: {site.id}")
            seen_ids.add(site.id)

        return errors

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "Settings":
        """Create Settings from a configuration dictionary (e.g., parsed YAML)."""
        server = config.get("server") or {}
        system = config.get("system") or {}
        storage = config.get("storage") or {}
        geo = config.get("geo") or {}

        data_dir = str(system.get("data_dir", "data"))
        websites = [SiteConfig.from_dict(w) for w in config.get("websites") or []]

        return cls(
            server_host=str(server.get("host", "0.0.0.0")),
            server_port=int(server.get("port", 9523)),
            data_dir=data_dir,
            task_interval_seconds=parse_interval(system.get("task_interval")),
            log_file=system.get("log_file", str(Path(data_dir) / "weblog-pipeline.log")),
            log_level=str(system.get("log_level", "INFO")).upper(),
            log_max_bytes=int(system.get("log_max_bytes", DEFAULT_LOG_MAX_BYTES)),
            log_backup_count=int(
                system.get("log_backup_count", DEFAULT_LOG_BACKUP_COUNT)
            ),
            cleanup_hour=int(system.get("cleanup_hour", DEFAULT_CLEANUP_HOUR)),
            cleanup_on_startup=bool(system.get("cleanup_on_startup", True)),
            retention_days=int(system.get("retention_days", DEFAULT_RETENTION_DAYS)),
            shutdown_grace_seconds=float(
                system.get("shutdown_grace_seconds", DEFAULT_SHUTDOWN_GRACE_SECONDS)
            ),
            storage_backend=str(storage.get("backend", "sqlite")),
            sqlite_db_path=str(
                storage.get("sqlite_db_path", str(Path(data_dir) / "weblog.db"))
            ),
            websites=websites,
            geo_networks=dict(geo.get("networks") or {}),
        )

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings from environment variables."""
        data_dir = os.environ.get("WEBLOG_DATA_DIR", "data")
        return cls(
            data_dir=data_dir,
            log_file=str(Path(data_dir) / "weblog-pipeline.log"),
            log_level=os.environ.get("WEBLOG_LOG_LEVEL", "INFO").upper(),
            sqlite_db_path=os.environ.get(
                "WEBLOG_SQLITE_DB_PATH", str(Path(data_dir) / "weblog.db")
            ),
        )


def load_settings_file(path: Path) -> Settings:
    """
    Load settings from a YAML file.

    Raises:
        ConfigurationError: If the file cannot be read or parsed
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load config from {path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    settings = Settings.from_dict(config)
    errors = settings.validate()
    if errors:
        raise ConfigurationError("; ".join(errors))
    return settings


# Default config file path
DEFAULT_CONFIG_PATH = Path("config.yaml")


@lru_cache
def get_settings(config_path: Optional[str] = None) -> Settings:
    """
    Get cached settings instance.

    Loads from the YAML config file if available, otherwise from env vars.

    Args:
        config_path: Optional path to the config file (defaults to
                     $WEBLOG_CONFIG or ./config.yaml)

    Returns:
        Settings instance

    Raises:
        ConfigurationError: If the config file exists but is invalid
    """
    if config_path:
        path = Path(config_path)
    else:
        path = Path(os.environ.get("WEBLOG_CONFIG", str(DEFAULT_CONFIG_PATH)))

    if path.exists():
        return load_settings_file(path)

    logger.warning(f"Config file {path} not found, using environment variables")
    return Settings.from_env()


def clear_settings_cache() -> None:
    """Clear the cached settings (useful for testing)."""
    get_settings.cache_clear()
