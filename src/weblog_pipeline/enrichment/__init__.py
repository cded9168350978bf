"""Record enrichment: pageview policy, user-agent classification, geo labels."""

from .base import DefaultEnricher, Enricher, build_enricher
from .geo import GeoLocation, GeoLocator
from .pageview import is_pageview_status, is_static_path, should_count_as_pageview
from .user_agent import UserAgentInfo, classify_device, is_bot, parse_user_agent

__all__ = [
    # Interface
    "Enricher",
    "DefaultEnricher",
    "build_enricher",
    # Geo
    "GeoLocation",
    "GeoLocator",
    # Pageview policy
    "should_count_as_pageview",
    "is_pageview_status",
    "is_static_path",
    # User agents
    "UserAgentInfo",
    "parse_user_agent",
    "classify_device",
    "is_bot",
]
