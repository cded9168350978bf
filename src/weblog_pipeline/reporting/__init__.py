"""Reporting and analytics module."""

from .stats import (
    RANGES,
    STATS_TYPES,
    StatsQueries,
    StatsQuery,
    StatsQueryError,
    resolve_time_range,
)

__all__ = [
    "StatsQueries",
    "StatsQuery",
    "StatsQueryError",
    "resolve_time_range",
    "RANGES",
    "STATS_TYPES",
]
