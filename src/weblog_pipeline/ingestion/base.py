"""
Record model and decoder interface for access-log ingestion.

Every supported log format is a LineDecoder strategy that turns one raw
line into a NormalizedRecord, or raises ParseError to reject it.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import ClassVar, Optional

from ..config.constants import MAX_RECORD_AGE_DAYS
from ..enrichment import Enricher
from .exceptions import StaleRecordError

# A percent sign not followed by two hex digits
INVALID_PERCENT_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


@dataclass(frozen=True)
class NormalizedRecord:
    """
    Decoded and enriched representation of one access-log line.

    Fields:
        ip: Client address
        pageview_flag: Whether the request counts toward visit analytics
        timestamp: Request time (timezone-aware)
        method: HTTP method
        url: Decoded request path
        status: HTTP response status (0 when unparseable)
        bytes_sent: Response body size (0 when unparseable)
        referer: Decoded referer
        user_browser / user_os / user_device: User-agent labels
        domestic_location / global_location: Geo labels
    """

    ip: str
    pageview_flag: bool
    timestamp: datetime
    method: str
    url: str
    status: int
    bytes_sent: int
    referer: str
    user_browser: str
    user_os: str
    user_device: str
    domestic_location: str
    global_location: str

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "ip": self.ip,
            "pageview_flag": self.pageview_flag,
            "timestamp": self.timestamp.isoformat(),
            "method": self.method,
            "url": self.url,
            "status": self.status,
            "bytes_sent": self.bytes_sent,
            "referer": self.referer,
            "user_browser": self.user_browser,
            "user_os": self.user_os,
            "user_device": self.user_device,
            "domestic_location": self.domestic_location,
            "global_location": self.global_location,
        }


class LineDecoder(ABC):
    """
    Abstract base class for line decoders.

    Decoders hold no mutable state: the only inputs are the line, the
    current time and the (read-only) enricher, so one instance may be
    shared across files and threads.

    Subclasses must implement:
        - log_type: Class attribute naming the configured log type
        - decode(): Turn one line into a NormalizedRecord
    """

    log_type: ClassVar[str]

    def __init__(self, enricher: Enricher):
        self.enricher = enricher

    @abstractmethod
    def decode(self, line: str, now: Optional[datetime] = None) -> NormalizedRecord:
        """
        Decode one raw log line.

        Args:
            line: Line content without the trailing newline
            now: Current time used for the age cutoff (defaults to now, UTC)

        Returns:
            NormalizedRecord

        Raises:
            ParseError: If the line does not match the format
            StaleRecordError: If the record is older than the age cutoff
        """
        pass

    @staticmethod
    def check_age(timestamp: datetime, now: Optional[datetime] = None) -> None:
        """
        Reject records older than MAX_RECORD_AGE_DAYS.

        Raises:
            StaleRecordError: If timestamp < now - MAX_RECORD_AGE_DAYS
        """
        if now is None:
            now = datetime.now(timezone.utc)
        cutoff = now - timedelta(days=MAX_RECORD_AGE_DAYS)
        if timestamp < cutoff:
            raise StaleRecordError(
                f"Record older than {MAX_RECORD_AGE_DAYS} days: {timestamp.isoformat()}"
            )

    def build_record(
        self,
        *,
        ip: str,
        timestamp: datetime,
        method: str,
        url: str,
        status: int,
        bytes_sent: int,
        referer: str,
        user_agent: str,
    ) -> NormalizedRecord:
        """Enrich decoded fields into a NormalizedRecord."""
        location = self.enricher.geo_locate(ip)
        agent = self.enricher.parse_user_agent(user_agent)
        return NormalizedRecord(
            ip=ip,
            pageview_flag=self.enricher.classify_pageview(status, url, ip),
            timestamp=timestamp,
            method=method,
            url=url,
            status=status,
            bytes_sent=bytes_sent,
            referer=referer,
            user_browser=agent.browser,
            user_os=agent.os,
            user_device=agent.device,
            domestic_location=location.domestic,
            global_location=location.global_,
        )
