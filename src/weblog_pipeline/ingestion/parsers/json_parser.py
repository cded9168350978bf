"""
Structured JSON access-log decoder.

One JSON object per line, as written by ASP.NET request logging:

    {"@timestamp": "2024/01/15 12:30:45.123",
     "aspnet-request-method": "GET",
     "aspnet-request-url": "/index.html?a=1",
     "aspnet-request-ip": "::1",
     "aspnet-request-headers": "X-Real-IP=1.2.3.4, User-Agent=Mozilla/5.0 ..."}

The log carries no status or size, so every request is recorded as a
200 with 0 bytes sent. The query string is stored in the referer column.
"""

import json
import re
import urllib.parse
from datetime import datetime, timezone
from typing import Optional

from ...config.constants import LOG_TYPE_JSON
from ..base import INVALID_PERCENT_ESCAPE, LineDecoder, NormalizedRecord
from ..exceptions import ParseError
from ..registry import DecoderRegistry

TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S.%f"

FIELD_TIMESTAMP = "@timestamp"
FIELD_METHOD = "aspnet-request-method"
FIELD_URL = "aspnet-request-url"
FIELD_IP = "aspnet-request-ip"
FIELD_HEADERS = "aspnet-request-headers"

DEFAULT_STATUS = 200
LOOPBACK_V6 = "::1"

# Header markers searched in order when the request IP is missing
FORWARDED_IP_MARKERS = ("X-Real-IP=", "X-Forwarded-For=")
USER_AGENT_MARKER = "User-Agent="

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def extract_header_value(headers: str, marker: str) -> Optional[str]:
    """
    Return the value following `marker` up to the next comma.

    None when the marker does not occur in the header dump.
    """
    if marker not in headers:
        return None
    return headers.split(marker, 1)[1].split(",", 1)[0]


def resolve_client_ip(ip: str, headers: str) -> str:
    """Fall back to forwarding headers when the logged address is empty or loopback."""
    if ip and ip != LOOPBACK_V6:
        return ip
    for marker in FORWARDED_IP_MARKERS:
        value = extract_header_value(headers, marker)
        if value is not None:
            return value
    return ip


def split_request_url(raw_url: str) -> tuple[str, str]:
    """
    Split a request URL into (decoded path, raw query).

    Raises:
        ParseError: If the URL is not well formed
    """
    if _CONTROL_CHARS.search(raw_url):
        raise ParseError(f"invalid URL {raw_url!r}: control character")
    if INVALID_PERCENT_ESCAPE.search(raw_url):
        raise ParseError(f"invalid URL {raw_url!r}: bad percent escape")
    try:
        parts = urllib.parse.urlsplit(raw_url)
    except ValueError as e:
        raise ParseError(f"invalid URL {raw_url!r}: {e}") from e
    return urllib.parse.unquote(parts.path), parts.query


@DecoderRegistry.register(LOG_TYPE_JSON)
class JsonLogDecoder(LineDecoder):
    """
    Decoder for one-object-per-line JSON request logs.

    Usage:
        decoder = JsonLogDecoder(enricher)
        record = decoder.decode(line)
    """

    log_type = LOG_TYPE_JSON

    def decode(self, line: str, now: Optional[datetime] = None) -> NormalizedRecord:
        try:
            payload = json.loads(line)
        except json.JSONDecodeError as e:
            raise ParseError(f"invalid JSON: {e.msg}", line_content=line) from e

        if not isinstance(payload, dict):
            raise ParseError("JSON line is not an object", line_content=line)

        raw_time = self._get_string(payload, FIELD_TIMESTAMP)
        try:
            timestamp = datetime.strptime(raw_time, TIMESTAMP_FORMAT).replace(
                tzinfo=timezone.utc
            )
        except ValueError as e:
            raise ParseError(f"invalid timestamp {raw_time!r}: {e}") from e

        self.check_age(timestamp, now)

        path, query = split_request_url(self._get_string(payload, FIELD_URL))
        headers = self._get_string(payload, FIELD_HEADERS)

        return self.build_record(
            ip=resolve_client_ip(self._get_string(payload, FIELD_IP), headers),
            timestamp=timestamp,
            method=self._get_string(payload, FIELD_METHOD),
            url=path,
            status=DEFAULT_STATUS,
            bytes_sent=0,
            referer=query,
            user_agent=extract_header_value(headers, USER_AGENT_MARKER) or "",
        )

    @staticmethod
    def _get_string(payload: dict, field: str) -> str:
        """Missing fields read as empty; non-string values are rejected."""
        value = payload.get(field)
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ParseError(
                f"field {field!r} must be a string, got {type(value).__name__}"
            )
        return value
