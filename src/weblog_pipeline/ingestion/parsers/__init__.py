"""
Line decoders for the supported access-log formats.

Importing this package registers every decoder with DecoderRegistry:
- nginx: combined access-log format
- json: one JSON request object per line

Usage:
    from weblog_pipeline.ingestion.parsers import CombinedLogDecoder

    decoder = CombinedLogDecoder(enricher)
    record = decoder.decode(line)
"""

from .combined_parser import COMBINED_LOG_PATTERN, CombinedLogDecoder
from .json_parser import JsonLogDecoder, extract_header_value, resolve_client_ip

__all__ = [
    # Combined format
    "COMBINED_LOG_PATTERN",
    "CombinedLogDecoder",
    # JSON format
    "JsonLogDecoder",
    "extract_header_value",
    "resolve_client_ip",
]
