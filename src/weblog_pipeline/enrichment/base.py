"""
Enrichment interface used by the line decoders.

Decoders delegate pageview classification, geographic labelling and
user-agent parsing to an Enricher so they stay free of lookup state.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from .geo import GeoLocation, GeoLocator
from .pageview import should_count_as_pageview
from .user_agent import UserAgentInfo, parse_user_agent

logger = logging.getLogger(__name__)


class Enricher(ABC):
    """
    Abstract base class for record enrichment.

    Implementations must be safe to call concurrently from several
    decoders; they hold only read-only lookup data.
    """

    @abstractmethod
    def classify_pageview(self, status: int, path: str, ip: str) -> bool:
        """Return True when the request counts as a pageview."""
        pass

    @abstractmethod
    def geo_locate(self, ip: str) -> GeoLocation:
        """Return domestic and global location labels for an address."""
        pass

    @abstractmethod
    def parse_user_agent(self, user_agent: str) -> UserAgentInfo:
        """Return browser, OS and device labels for a user-agent string."""
        pass


class DefaultEnricher(Enricher):
    """Enricher backed by the built-in pageview policy, UA tables and GeoLocator."""

    def __init__(self, geo_locator: Optional[GeoLocator] = None):
        self._geo = geo_locator or GeoLocator()

    def classify_pageview(self, status: int, path: str, ip: str) -> bool:
        return should_count_as_pageview(status, path, ip)

    def geo_locate(self, ip: str) -> GeoLocation:
        return self._geo.locate(ip)

    def parse_user_agent(self, user_agent: str) -> UserAgentInfo:
        return parse_user_agent(user_agent)


def build_enricher(geo_networks: Optional[dict[str, dict[str, str]]] = None) -> Enricher:
    """
    Create the default enricher from configuration.

    Args:
        geo_networks: CIDR -> labels overrides (Settings.geo_networks)

    Raises:
        ValueError: If the geo configuration is invalid
    """
    enricher = DefaultEnricher(GeoLocator(geo_networks))
    logger.info("Enrichment initialized")
    return enricher
