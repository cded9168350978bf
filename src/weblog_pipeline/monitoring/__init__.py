"""Monitoring module: operational logging and log rotation."""

from .log_setup import LOG_FORMAT, LogRotator, setup_logging

__all__ = [
    "LOG_FORMAT",
    "LogRotator",
    "setup_logging",
]
