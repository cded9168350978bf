"""
Geographic labels for client addresses.

Addresses in private, loopback and link-local ranges are labelled as
intranet traffic; configured CIDR overrides take precedence; everything
else is unknown.
"""

import ipaddress
import logging
from dataclasses import dataclass
from typing import Optional, Union

logger = logging.getLogger(__name__)

INTRANET = "Intranet"
UNKNOWN = "Unknown"

IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


@dataclass(frozen=True)
class GeoLocation:
    """Domestic (region/province level) and global (country level) labels."""

    domestic: str
    global_: str


UNKNOWN_LOCATION = GeoLocation(domestic=UNKNOWN, global_=UNKNOWN)
INTRANET_LOCATION = GeoLocation(domestic=INTRANET, global_=INTRANET)


class GeoLocator:
    """
    Resolves client addresses to GeoLocation labels.

    Usage:
        locator = GeoLocator({"203.0.113.0/24": {"domestic": "Beijing", "global": "China"}})
        locator.locate("203.0.113.7")  # GeoLocation('Beijing', 'China')
    """

    def __init__(self, networks: Optional[dict[str, dict[str, str]]] = None):
        """
        Initialize the locator.

        Args:
            networks: Mapping of CIDR -> {"domestic": ..., "global": ...}

        Raises:
            ValueError: If a CIDR is malformed
        """
        self._networks: list[tuple[IPNetwork, GeoLocation]] = []
        for cidr, labels in (networks or {}).items():
            network = ipaddress.ip_network(cidr, strict=False)
            location = GeoLocation(
                domestic=labels.get("domestic", UNKNOWN),
                global_=labels.get("global", UNKNOWN),
            )
            self._networks.append((network, location))

        # Most specific network wins
        self._networks.sort(key=lambda item: item[0].prefixlen, reverse=True)
        logger.debug(f"GeoLocator loaded {len(self._networks)} network overrides")

    def locate(self, ip: str) -> GeoLocation:
        """
        Look up labels for an address.

        Malformed or empty addresses resolve to UNKNOWN_LOCATION.
        """
        if not ip:
            return UNKNOWN_LOCATION

        try:
            address = ipaddress.ip_address(ip.strip())
        except ValueError:
            return UNKNOWN_LOCATION

        for network, location in self._networks:
            if address.version == network.version and address in network:
                return location

        if address.is_loopback or address.is_private or address.is_link_local:
            return INTRANET_LOCATION

        return UNKNOWN_LOCATION
