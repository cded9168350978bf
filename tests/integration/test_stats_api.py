"""
Integration tests for statistics queries and the HTTP API.

Tests cover:
- Overview, time series, rankings and raw logs on SQLite
- Bot traffic excluded from page views and visitors
- Request validation (400), query failures (500) and health (200/503)
"""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from weblog_pipeline.config import SiteConfig
from weblog_pipeline.reporting import StatsQueries, StatsQueryError, resolve_time_range
from weblog_pipeline.storage import QueryError
from weblog_pipeline.web import create_app

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
SITE_ID = "blog"


def at(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 6, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def populated_backend(sqlite_backend, record_factory):
    """SQLite backend with a small, known day of traffic."""
    sqlite_backend.batch_insert(
        SITE_ID,
        [
            record_factory(at(15, 9), ip="8.8.8.1", url="/"),
            record_factory(at(15, 9, 30), ip="8.8.8.1", url="/about"),
            record_factory(at(15, 10), ip="8.8.8.2", url="/", user_browser="Firefox"),
            record_factory(at(15, 11), ip="8.8.8.3", url="/", user_device="Bot"),
            record_factory(
                at(15, 11, 30), ip="8.8.8.4", url="/missing", status=404,
                pageview_flag=False,
            ),
            record_factory(at(14, 23), ip="8.8.8.5", url="/"),
        ],
    )
    sqlite_backend.batch_insert("other", [record_factory(at(15, 9), url="/elsewhere")])
    return sqlite_backend


@pytest.fixture
def stats(populated_backend):
    return StatsQueries(populated_backend, site_ids={SITE_ID, "other"}, clock=lambda: NOW)


def run(stats: StatsQueries, stats_type: str, **params) -> dict:
    params.setdefault("id", SITE_ID)
    return stats.query_stats(stats_type, stats.build_query(stats_type, params))


class TestTimeRanges:
    """Tests for resolve_time_range()."""

    @pytest.mark.parametrize(
        "name, start, end",
        [
            ("today", at(15, 0), at(16, 0)),
            ("yesterday", at(14, 0), at(15, 0)),
            ("last7days", at(9, 0), at(16, 0)),
            ("week", at(10, 0), at(16, 0)),
            ("month", at(1, 0), at(16, 0)),
        ],
    )
    def test_named_ranges(self, name, start, end):
        """Ranges are half-open and end at the next midnight."""
        assert resolve_time_range(name, NOW) == (start, end)

    def test_unknown_range(self):
        """Unknown names are rejected."""
        with pytest.raises(StatsQueryError, match="range"):
            resolve_time_range("forever", NOW)


class TestStatsQueries:
    """Tests for StatsQueries against SQLite."""

    def test_overview(self, stats):
        """Bots count as requests but not as page views or visitors."""
        result = run(stats, "overview")

        assert result == {
            "range": "today",
            "pv": 3,
            "uv": 2,
            "requests": 5,
            "traffic": 500,
        }

    def test_overview_yesterday(self, stats):
        """Ranges select only their own rows."""
        assert run(stats, "overview", range="yesterday")["requests"] == 1

    def test_hourly_timeseries(self, stats):
        """One-day ranges have 24 hourly buckets, empty ones zero-filled."""
        result = run(stats, "timeseries")

        assert result["bucket"] == "hour"
        assert len(result["labels"]) == 24
        nine = result["labels"].index("09:00")
        assert result["pv"][nine] == 2
        assert result["uv"][nine] == 1
        assert result["pv"][result["labels"].index("10:00")] == 1
        assert result["pv"][result["labels"].index("11:00")] == 0
        assert sum(result["pv"]) == 3

    def test_daily_timeseries(self, stats):
        """Multi-day ranges have one bucket per day."""
        result = run(stats, "timeseries", range="last7days")

        assert result["bucket"] == "day"
        assert result["labels"][0] == "2024-06-09"
        assert result["labels"][-1] == "2024-06-15"
        assert result["pv"][-2:] == [1, 3]

    def test_url_ranking(self, stats):
        """Rankings are ordered by page views."""
        result = run(stats, "url")

        assert result["items"] == [
            {"name": "/", "pv": 2, "uv": 2},
            {"name": "/about", "pv": 1, "uv": 1},
        ]

    def test_ranking_limit(self, stats):
        """limit caps the number of items."""
        assert len(run(stats, "url", limit="1")["items"]) == 1

    def test_browser_ranking(self, stats):
        """Rankings group by the enriched column."""
        names = [item["name"] for item in run(stats, "browser")["items"]]
        assert names == ["Chrome", "Firefox"]

    def test_location_ranking(self, stats):
        """locationType selects the location column."""
        result = run(stats, "location", locationType="global")
        assert result["items"][0]["name"] == "Unknown"

    def test_logs_newest_first(self, stats):
        """Raw logs are paginated newest first, including non-pageviews."""
        result = run(stats, "logs", pageSize="2")

        assert result["pagination"] == {"page": 1, "page_size": 2, "total": 5, "pages": 3}
        assert result["logs"][0]["url"] == "/missing"
        assert result["logs"][0]["pageview_flag"] is False

    def test_logs_filters(self, stats):
        """ip, url and status filters narrow the rows."""
        assert run(stats, "logs", status="404")["pagination"]["total"] == 1
        assert run(stats, "logs", ip="8.8.8.1")["pagination"]["total"] == 2
        assert run(stats, "logs", url="abo")["pagination"]["total"] == 1

    @pytest.mark.parametrize(
        "stats_type, params, parameter",
        [
            ("overview", {}, "id"),
            ("overview", {"id": "nope"}, "id"),
            ("overview", {"id": SITE_ID, "range": "decade"}, "range"),
            ("url", {"id": SITE_ID, "limit": "0"}, "limit"),
            ("logs", {"id": SITE_ID, "page": "x"}, "page"),
            ("location", {"id": SITE_ID, "locationType": "moon"}, "locationType"),
        ],
    )
    def test_invalid_parameters(self, stats, stats_type, params, parameter):
        """Invalid parameters name the offending parameter."""
        with pytest.raises(StatsQueryError) as exc_info:
            stats.build_query(stats_type, params)
        assert exc_info.value.parameter == parameter

    def test_unknown_type(self, stats):
        """Unknown statistics types are rejected."""
        with pytest.raises(StatsQueryError, match="Unknown statistics type"):
            stats.build_query("heatmap", {"id": SITE_ID})


@pytest.fixture
def client(stats, populated_backend):
    sites = [
        SiteConfig(id=SITE_ID, name="Blog", log_path="/var/log/blog.log"),
        SiteConfig(id="other", name="Other", log_path="/var/log/other.log"),
    ]
    with TestClient(create_app(sites, stats, populated_backend)) as test_client:
        yield test_client


class TestHttpApi:
    """Tests for the FastAPI application."""

    def test_websites(self, client):
        """Configured sites are listed with id and name."""
        response = client.get("/api/websites")

        assert response.status_code == 200
        assert response.json() == {
            "websites": [{"id": "blog", "name": "Blog"}, {"id": "other", "name": "Other"}]
        }

    def test_stats_ok(self, client):
        """Valid requests return the query result."""
        response = client.get("/api/stats/overview", params={"id": SITE_ID})

        assert response.status_code == 200
        assert response.json()["pv"] == 3

    def test_stats_bad_request(self, client):
        """Validation failures are 400 with an error message."""
        response = client.get("/api/stats/overview", params={"id": SITE_ID, "range": "x"})

        assert response.status_code == 400
        assert "range" in response.json()["error"]

    def test_stats_unknown_type(self, client):
        """Unknown statistics types are 400."""
        response = client.get("/api/stats/heatmap", params={"id": SITE_ID})
        assert response.status_code == 400

    def test_stats_query_failure(self, client, populated_backend, monkeypatch):
        """Backend failures are 500."""

        def fail(*args, **kwargs):
            raise QueryError("disk I/O error")

        monkeypatch.setattr(populated_backend, "query", fail)

        response = client.get("/api/stats/overview", params={"id": SITE_ID})

        assert response.status_code == 500
        assert response.json()["error"].startswith("Query failed")

    def test_cors_header(self, client):
        """Responses allow any origin."""
        response = client.get("/api/websites", headers={"Origin": "http://example.com"})
        assert response.headers["access-control-allow-origin"] == "*"

    def test_health(self, client):
        """A working backend is healthy."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["healthy"] is True

    def test_health_unhealthy(self, client, populated_backend, monkeypatch):
        """An unhealthy backend returns 503."""
        monkeypatch.setattr(
            populated_backend,
            "health_check",
            lambda: {"healthy": False, "backend_type": "sqlite", "message": "down"},
        )

        assert client.get("/health").status_code == 503
