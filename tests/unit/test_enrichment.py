"""
Unit tests for record enrichment.

Tests cover:
- Pageview classification (status, static assets, excluded paths)
- User-agent classification (browser, OS, device, bots)
- Geo labels (intranet ranges, CIDR overrides)
"""

import pytest

from weblog_pipeline.enrichment import (
    DefaultEnricher,
    GeoLocation,
    GeoLocator,
    build_enricher,
    classify_device,
    is_bot,
    is_pageview_status,
    is_static_path,
    parse_user_agent,
    should_count_as_pageview,
)

CHROME_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
EDGE_WINDOWS = CHROME_WINDOWS + " Edg/120.0.0.0"
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
FIREFOX_LINUX = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"
ANDROID_TABLET = (
    "Mozilla/5.0 (Linux; Android 13; SM-X700) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
GOOGLEBOT = "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"


class TestPageviewPolicy:
    """Tests for should_count_as_pageview()."""

    @pytest.mark.parametrize("status", [200, 204, 304])
    def test_countable_statuses(self, status):
        """2xx and 304 can count."""
        assert is_pageview_status(status)

    @pytest.mark.parametrize("status", [301, 400, 404, 500, None])
    def test_non_countable_statuses(self, status):
        """Redirects and errors never count."""
        assert not is_pageview_status(status)

    def test_page_request_counts(self):
        """A successful page request counts."""
        assert should_count_as_pageview(200, "/blog/post-1", "8.8.8.8")

    def test_query_string_ignored(self):
        """Query strings do not affect classification."""
        assert should_count_as_pageview(200, "/search?q=a.css", "8.8.8.8")

    @pytest.mark.parametrize(
        "path", ["/css/site.css", "/js/app.js?v=3", "/img/logo.PNG", "/favicon.ico"]
    )
    def test_static_assets_excluded(self, path):
        """Static assets are not pageviews."""
        assert not should_count_as_pageview(200, path, "8.8.8.8")

    @pytest.mark.parametrize("path", ["/api/users", "/static/page", "/robots.txt"])
    def test_excluded_paths(self, path):
        """API and infrastructure paths are not pageviews."""
        assert not should_count_as_pageview(200, path, "8.8.8.8")

    def test_error_status_excluded(self):
        """A 400 response is not a pageview."""
        assert not should_count_as_pageview(400, "/page", "8.8.8.8")

    def test_empty_ip_excluded(self):
        """Requests without a client address are not counted."""
        assert not should_count_as_pageview(200, "/page", "")

    def test_is_static_path(self):
        """Directories and extensionless paths are not static."""
        assert is_static_path("/a/b.woff2")
        assert not is_static_path("/v1.2/docs")
        assert not is_static_path("/")


class TestUserAgent:
    """Tests for user-agent classification."""

    @pytest.mark.parametrize(
        "ua, browser, os_name, device",
        [
            (CHROME_WINDOWS, "Chrome", "Windows", "Desktop"),
            (EDGE_WINDOWS, "Edge", "Windows", "Desktop"),
            (SAFARI_IPHONE, "Safari", "iOS", "Mobile"),
            (FIREFOX_LINUX, "Firefox", "Linux", "Desktop"),
            (ANDROID_TABLET, "Chrome", "Android", "Tablet"),
        ],
    )
    def test_classification(self, ua, browser, os_name, device):
        """Common browsers are classified."""
        info = parse_user_agent(ua)
        assert (info.browser, info.os, info.device) == (browser, os_name, device)

    def test_bot_device(self):
        """Crawlers are labelled as the Bot device."""
        assert is_bot(GOOGLEBOT)
        assert classify_device(GOOGLEBOT) == "Bot"

    def test_curl_is_bot(self):
        """HTTP tools are bots."""
        info = parse_user_agent("curl/8.4.0")
        assert info.browser == "curl"
        assert info.device == "Bot"

    @pytest.mark.parametrize("ua", ["", "-", None])
    def test_missing_user_agent(self, ua):
        """Missing user agents are Unknown across the board."""
        info = parse_user_agent(ua)
        assert info.to_dict() == {"browser": "Unknown", "os": "Unknown", "device": "Unknown"}


class TestGeoLocator:
    """Tests for GeoLocator."""

    @pytest.mark.parametrize("ip", ["127.0.0.1", "10.1.2.3", "192.168.0.5", "::1", "fe80::1"])
    def test_intranet_addresses(self, ip):
        """Private, loopback and link-local addresses are intranet."""
        assert GeoLocator().locate(ip) == GeoLocation("Intranet", "Intranet")

    @pytest.mark.parametrize("ip", ["8.8.8.8", "", "not-an-ip"])
    def test_unknown_addresses(self, ip):
        """Public or malformed addresses without overrides are unknown."""
        assert GeoLocator().locate(ip) == GeoLocation("Unknown", "Unknown")

    def test_overrides_most_specific_wins(self):
        """The longest matching prefix wins, and beats the intranet rule."""
        locator = GeoLocator(
            {
                "10.0.0.0/8": {"domestic": "Corp", "global": "Corp"},
                "10.20.0.0/16": {"domestic": "Office", "global": "Corp"},
                "8.8.8.0/24": {"domestic": "Mountain View", "global": "United States"},
            }
        )

        assert locator.locate("10.20.1.1") == GeoLocation("Office", "Corp")
        assert locator.locate("10.1.1.1") == GeoLocation("Corp", "Corp")
        assert locator.locate("8.8.8.8").global_ == "United States"

    def test_invalid_cidr(self):
        """Malformed networks are rejected at construction."""
        with pytest.raises(ValueError):
            GeoLocator({"not-a-cidr": {"domestic": "x"}})


class TestDefaultEnricher:
    """Tests for DefaultEnricher."""

    def test_delegates(self):
        """The enricher combines the policy, UA tables and locator."""
        enricher = build_enricher({"8.8.8.0/24": {"domestic": "DNS", "global": "US"}})

        assert isinstance(enricher, DefaultEnricher)
        assert enricher.classify_pageview(200, "/", "8.8.8.8") is True
        assert enricher.geo_locate("8.8.8.8") == GeoLocation("DNS", "US")
        assert enricher.parse_user_agent(CHROME_WINDOWS).browser == "Chrome"
