"""
Combined access-log format decoder (nginx / Apache "combined").

Line shape:
    203.0.113.9 - - [15/Jan/2024:12:30:45 +0800] "GET /index.html HTTP/1.1" 200 512 "https://ref.example/" "Mozilla/5.0 ..."
"""

import re
import urllib.parse
from datetime import datetime
from typing import Optional

from ...config.constants import LOG_TYPE_NGINX
from ..base import INVALID_PERCENT_ESCAPE, LineDecoder, NormalizedRecord
from ..exceptions import ParseError
from ..registry import DecoderRegistry

# Range of an SQLite INTEGER column
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

COMBINED_LOG_PATTERN = re.compile(
    r"^(\S+) - (\S+) \[([^\]]+)\] "
    r'"(\S+) ([^"]+) HTTP/\d(?:\.\d)?" '
    r'(\d+|-) (\d+|-) "([^"]*)" "([^"]*)"'
)

TIMESTAMP_FORMAT = "%d/%b/%Y:%H:%M:%S %z"


def unquote_or_raw(value: str) -> str:
    """
    URL-decode a value, falling back to the raw string.

    '+' decodes to a space, as in query strings. A malformed percent
    escape anywhere in the value keeps the whole value raw.
    """
    if INVALID_PERCENT_ESCAPE.search(value):
        return value
    try:
        return urllib.parse.unquote_plus(value, errors="strict")
    except UnicodeDecodeError:
        return value


def to_int_or_zero(value: str) -> int:
    """Parse an integer field; '-', garbage and values outside int64 become 0."""
    try:
        number = int(value)
    except ValueError:
        return 0
    if not INT64_MIN <= number <= INT64_MAX:
        return 0
    return number


@DecoderRegistry.register(LOG_TYPE_NGINX)
class CombinedLogDecoder(LineDecoder):
    """
    Decoder for the combined access-log format.

    Usage:
        decoder = CombinedLogDecoder(enricher)
        record = decoder.decode(line)
    """

    log_type = LOG_TYPE_NGINX

    def decode(self, line: str, now: Optional[datetime] = None) -> NormalizedRecord:
        match = COMBINED_LOG_PATTERN.match(line)
        if match is None:
            raise ParseError("format mismatch", line_content=line)

        (
            ip,
            _remote_user,
            raw_time,
            method,
            raw_path,
            raw_status,
            raw_bytes,
            raw_referer,
            user_agent,
        ) = match.groups()

        try:
            timestamp = datetime.strptime(raw_time, TIMESTAMP_FORMAT)
        except ValueError as e:
            raise ParseError(f"invalid timestamp {raw_time!r}: {e}") from e

        self.check_age(timestamp, now)

        return self.build_record(
            ip=ip,
            timestamp=timestamp,
            method=method,
            url=unquote_or_raw(raw_path),
            status=to_int_or_zero(raw_status),
            bytes_sent=to_int_or_zero(raw_bytes),
            referer=unquote_or_raw(raw_referer),
            user_agent=user_agent,
        )
