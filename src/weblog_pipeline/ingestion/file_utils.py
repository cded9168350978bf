"""
Shared file utilities for ingestion module.

Resolves configured log paths and reads complete lines from an
append-only log file without running past a size snapshot.
"""

import glob
import logging
from typing import BinaryIO, Iterator

from .exceptions import SourceValidationError

logger = logging.getLogger(__name__)

GLOB_WILDCARD = "*"


def is_glob_pattern(log_path: str) -> bool:
    """Return True if a configured log path is a glob pattern."""
    return GLOB_WILDCARD in log_path


def resolve_log_paths(log_path: str) -> list[str]:
    """
    Expand a configured log path into concrete file paths.

    A literal path is returned as-is, even if the file does not exist;
    the scanner reports that as a file error. A pattern is expanded and
    sorted so files are scanned in a stable order.

    Args:
        log_path: Literal file path or glob pattern

    Returns:
        List of file paths

    Raises:
        SourceValidationError: If the pattern is invalid or matches nothing
    """
    if not is_glob_pattern(log_path):
        return [log_path]

    try:
        matches = sorted(glob.glob(log_path))
    except (OSError, ValueError) as e:
        raise SourceValidationError(
            f"Failed to expand log path pattern {log_path!r}",
            source_type="pattern",
            reason=str(e),
        ) from e

    if not matches:
        raise SourceValidationError(
            f"No log files match pattern {log_path!r}",
            source_type="pattern",
            reason="zero matches",
        )

    logger.debug(f"Pattern {log_path!r} matched {len(matches)} file(s)")
    return matches


def iter_complete_lines(handle: BinaryIO, limit: int) -> Iterator[bytes]:
    """
    Yield newline-terminated lines from the current position.

    Reads at most `limit` bytes. A trailing line without a newline
    (a write still in progress, or data past the limit) is not yielded
    and its bytes are not consumed, so the caller can resume from the
    end of the last yielded line.

    Args:
        handle: File opened in binary mode, positioned at the start offset
        limit: Maximum number of bytes to read

    Yields:
        Raw lines including the trailing b"\\n"
    """
    remaining = limit
    while remaining > 0:
        line = handle.readline(remaining)
        if not line or not line.endswith(b"\n"):
            return
        remaining -= len(line)
        yield line
