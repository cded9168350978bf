"""
Statistics queries over stored access logs.

Builds validated queries from HTTP request parameters and runs them
against the storage backend. Supported statistics:

- overview: page views, unique visitors, requests, traffic
- timeseries: pv/uv per hour (single-day ranges) or per day
- url, referer, browser, os, device, location: top-N rankings
- logs: paginated raw records

Page views count rows flagged as pageviews, excluding the 'Bot' device.
Unique visitors are distinct client addresses among those rows.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

import pandas as pd

from ..config.constants import TABLE_ACCESS_LOGS
from ..storage import StorageBackend, from_sqlite_bool

logger = logging.getLogger(__name__)

# =============================================================================
# Request vocabulary
# =============================================================================

STATS_OVERVIEW = "overview"
STATS_TIMESERIES = "timeseries"
STATS_LOGS = "logs"

# Ranking statistics and the column each one groups by
RANKING_COLUMNS = {
    "url": "url",
    "referer": "referer",
    "browser": "user_browser",
    "os": "user_os",
    "device": "user_device",
}
LOCATION_COLUMNS = {
    "domestic": "domestic_location",
    "global": "global_location",
}

STATS_TYPES = frozenset(
    [STATS_OVERVIEW, STATS_TIMESERIES, STATS_LOGS, "location", *RANKING_COLUMNS]
)

RANGES = ("today", "yesterday", "last7days", "last30days", "week", "month")
DEFAULT_RANGE = "today"

DEFAULT_LIMIT = 10
MAX_LIMIT = 100
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100

BOT_DEVICE = "Bot"

LOG_COLUMNS = (
    "request_time",
    "ip",
    "method",
    "url",
    "status",
    "bytes_sent",
    "referer",
    "user_browser",
    "user_os",
    "user_device",
    "domestic_location",
    "global_location",
    "pageview_flag",
)


class StatsQueryError(Exception):
    """Raised when a statistics request has invalid parameters."""

    def __init__(self, message: str, parameter: Optional[str] = None):
        self.parameter = parameter
        self.message = message
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.parameter:
            return f"{self.message} (parameter '{self.parameter}')"
        return self.message


@dataclass
class StatsQuery:
    """A validated statistics request."""

    stats_type: str
    site_id: str
    range_name: str
    start: datetime
    end: datetime
    limit: int = DEFAULT_LIMIT
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    location_type: str = "domestic"
    filters: dict[str, str] = field(default_factory=dict)

    @property
    def bucket(self) -> str:
        """Time-series granularity: 'hour' for one-day ranges, else 'day'."""
        return "hour" if self.range_name in ("today", "yesterday") else "day"

    @property
    def start_epoch(self) -> int:
        return int(self.start.timestamp())

    @property
    def end_epoch(self) -> int:
        return int(self.end.timestamp())


def resolve_time_range(range_name: str, now: datetime) -> tuple[datetime, datetime]:
    """
    Resolve a named range to [start, end) in the timezone of `now`.

    Raises:
        StatsQueryError: For an unknown range name
    """
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    tomorrow = midnight + timedelta(days=1)

    if range_name == "today":
        return midnight, tomorrow
    if range_name == "yesterday":
        return midnight - timedelta(days=1), midnight
    if range_name == "last7days":
        return midnight - timedelta(days=6), tomorrow
    if range_name == "last30days":
        return midnight - timedelta(days=29), tomorrow
    if range_name == "week":
        return midnight - timedelta(days=midnight.weekday()), tomorrow
    if range_name == "month":
        return midnight.replace(day=1), tomorrow

    raise StatsQueryError(
        f"Unknown range '{range_name}'. Must be one of: {', '.join(RANGES)}",
        parameter="range",
    )


def _parse_bounded_int(
    params: dict[str, str], name: str, default: int, maximum: int
) -> int:
    raw = params.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise StatsQueryError(f"'{raw}' is not an integer", parameter=name)
    if not 1 <= value <= maximum:
        raise StatsQueryError(f"must be between 1 and {maximum}", parameter=name)
    return value


def local_now() -> datetime:
    return datetime.now().astimezone()


class StatsQueries:
    """
    Statistics queries for the HTTP API.

    Usage:
        stats = StatsQueries(backend, site_ids={"a1b2c3d4"})
        query = stats.build_query("url", {"id": "a1b2c3d4", "range": "last7days"})
        result = stats.query_stats("url", query)
    """

    def __init__(
        self,
        backend: StorageBackend,
        site_ids: Optional[set[str]] = None,
        clock: Callable[[], datetime] = local_now,
    ):
        """
        Args:
            backend: Initialized storage backend
            site_ids: Known site identifiers; None accepts any identifier
            clock: Returns the current timezone-aware local time
        """
        self._backend = backend
        self._site_ids = site_ids
        self._clock = clock

    # =========================================================================
    # Query construction
    # =========================================================================

    def build_query(self, stats_type: str, params: dict[str, str]) -> StatsQuery:
        """
        Validate request parameters into a StatsQuery.

        Raises:
            StatsQueryError: If the type or any parameter is invalid
        """
        if stats_type not in STATS_TYPES:
            raise StatsQueryError(
                f"Unknown statistics type '{stats_type}'. "
                f"Must be one of: {', '.join(sorted(STATS_TYPES))}"
            )

        site_id = (params.get("id") or "").strip()
        if not site_id:
            raise StatsQueryError("site id is required", parameter="id")
        if self._site_ids is not None and site_id not in self._site_ids:
            raise StatsQueryError(f"Unknown site '{site_id}'", parameter="id")

        range_name = params.get("range") or DEFAULT_RANGE
        start, end = resolve_time_range(range_name, self._clock())

        location_type = params.get("locationType") or "domestic"
        if location_type not in LOCATION_COLUMNS:
            raise StatsQueryError(
                f"must be one of: {', '.join(LOCATION_COLUMNS)}",
                parameter="locationType",
            )

        filters = {}
        for name in ("ip", "url", "status"):
            if params.get(name):
                filters[name] = params[name]

        return StatsQuery(
            stats_type=stats_type,
            site_id=site_id,
            range_name=range_name,
            start=start,
            end=end,
            limit=_parse_bounded_int(params, "limit", DEFAULT_LIMIT, MAX_LIMIT),
            page=_parse_bounded_int(params, "page", 1, 1_000_000),
            page_size=_parse_bounded_int(
                params, "pageSize", DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
            ),
            location_type=location_type,
            filters=filters,
        )

    # =========================================================================
    # Execution
    # =========================================================================

    def query_stats(self, stats_type: str, query: StatsQuery) -> dict[str, Any]:
        """
        Run a statistics query.

        Raises:
            StatsQueryError: For an unknown statistics type
            StorageError: If the backend query fails
        """
        if stats_type == STATS_OVERVIEW:
            return self.get_overview(query)
        if stats_type == STATS_TIMESERIES:
            return self.get_timeseries(query)
        if stats_type == STATS_LOGS:
            return self.get_logs(query)
        if stats_type == "location":
            return self.get_ranking(query, LOCATION_COLUMNS[query.location_type])
        if stats_type in RANKING_COLUMNS:
            return self.get_ranking(query, RANKING_COLUMNS[stats_type])
        raise StatsQueryError(f"Unknown statistics type '{stats_type}'")

    def _base_params(self, query: StatsQuery) -> dict[str, Any]:
        return {
            "site_id": query.site_id,
            "start": query.start_epoch,
            "end": query.end_epoch,
            "bot": BOT_DEVICE,
        }

    def get_overview(self, query: StatsQuery) -> dict[str, Any]:
        """Totals for the range."""
        sql = f"""
            SELECT
                COUNT(*) AS requests,
                COALESCE(SUM(bytes_sent), 0) AS traffic,
                COALESCE(SUM(
                    CASE WHEN pageview_flag = 1 AND user_device != :bot
                    THEN 1 ELSE 0 END
                ), 0) AS pv,
                COUNT(DISTINCT CASE WHEN pageview_flag = 1 AND user_device != :bot
                    THEN ip END) AS uv
            FROM {TABLE_ACCESS_LOGS}
            WHERE site_id = :site_id
              AND timestamp >= :start AND timestamp < :end
        """
        row = self._backend.query(sql, self._base_params(query))[0]
        return {
            "range": query.range_name,
            "pv": int(row["pv"]),
            "uv": int(row["uv"]),
            "requests": int(row["requests"]),
            "traffic": int(row["traffic"]),
        }

    def get_timeseries(self, query: StatsQuery) -> dict[str, Any]:
        """pv/uv per hour or per day, with empty buckets filled with zeros."""
        sql = f"""
            SELECT timestamp, ip
            FROM {TABLE_ACCESS_LOGS}
            WHERE site_id = :site_id
              AND timestamp >= :start AND timestamp < :end
              AND pageview_flag = 1 AND user_device != :bot
        """
        rows = self._backend.query(sql, self._base_params(query))

        hourly = query.bucket == "hour"
        freq = "h" if hourly else "D"
        label_format = "%H:00" if hourly else "%Y-%m-%d"
        tz = query.start.tzinfo

        buckets = pd.date_range(
            start=pd.Timestamp(query.start),
            end=pd.Timestamp(query.end),
            freq=freq,
            inclusive="left",
        )

        df = pd.DataFrame(rows, columns=["timestamp", "ip"])
        if df.empty:
            pv = pd.Series(0, index=buckets)
            uv = pd.Series(0, index=buckets)
        else:
            times = pd.to_datetime(df["timestamp"], unit="s", utc=True).dt.tz_convert(tz)
            df["bucket"] = times.dt.floor(freq)
            grouped = df.groupby("bucket")["ip"]
            pv = grouped.size().reindex(buckets, fill_value=0)
            uv = grouped.nunique().reindex(buckets, fill_value=0)

        return {
            "range": query.range_name,
            "bucket": query.bucket,
            "labels": [ts.strftime(label_format) for ts in buckets],
            "pv": [int(v) for v in pv.tolist()],
            "uv": [int(v) for v in uv.tolist()],
        }

    def get_ranking(self, query: StatsQuery, column: str) -> dict[str, Any]:
        """Top values of a column by page views."""
        sql = f"""
            SELECT
                {column} AS name,
                COUNT(*) AS pv,
                COUNT(DISTINCT ip) AS uv
            FROM {TABLE_ACCESS_LOGS}
            WHERE site_id = :site_id
              AND timestamp >= :start AND timestamp < :end
              AND pageview_flag = 1 AND user_device != :bot
              AND {column} IS NOT NULL AND {column} != ''
            GROUP BY {column}
            ORDER BY pv DESC, name ASC
            LIMIT :limit
        """
        params = self._base_params(query)
        params["limit"] = query.limit
        rows = self._backend.query(sql, params)
        return {
            "range": query.range_name,
            "items": [
                {"name": row["name"], "pv": int(row["pv"]), "uv": int(row["uv"])}
                for row in rows
            ],
        }

    def get_logs(self, query: StatsQuery) -> dict[str, Any]:
        """Raw records, newest first, one page at a time."""
        where = [
            "site_id = :site_id",
            "timestamp >= :start",
            "timestamp < :end",
        ]
        params = self._base_params(query)
        if "ip" in query.filters:
            where.append("ip = :ip")
            params["ip"] = query.filters["ip"]
        if "url" in query.filters:
            where.append("url LIKE :url")
            params["url"] = f"%{query.filters['url']}%"
        if "status" in query.filters:
            try:
                params["status"] = int(query.filters["status"])
            except ValueError:
                raise StatsQueryError(
                    f"'{query.filters['status']}' is not an integer", parameter="status"
                )
            where.append("status = :status")
        where_sql = " AND ".join(where)

        total = self._backend.query(
            f"SELECT COUNT(*) AS total FROM {TABLE_ACCESS_LOGS} WHERE {where_sql}",
            params,
        )[0]["total"]

        params["limit"] = query.page_size
        params["offset"] = (query.page - 1) * query.page_size
        rows = self._backend.query(
            f"""
            SELECT {", ".join(LOG_COLUMNS)}
            FROM {TABLE_ACCESS_LOGS}
            WHERE {where_sql}
            ORDER BY timestamp DESC, id DESC
            LIMIT :limit OFFSET :offset
            """,
            params,
        )

        logs = []
        for row in rows:
            entry = dict(row)
            entry["pageview_flag"] = from_sqlite_bool(entry["pageview_flag"])
            logs.append(entry)

        pages = (total + query.page_size - 1) // query.page_size
        return {
            "range": query.range_name,
            "logs": logs,
            "pagination": {
                "page": query.page,
                "page_size": query.page_size,
                "total": int(total),
                "pages": pages,
            },
        }
