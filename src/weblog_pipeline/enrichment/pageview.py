"""
Pageview classification.

Decides whether a request counts toward visit analytics: successful
document requests count, static assets, API calls and errors do not.
"""

from typing import Optional

# Extensions of static assets that never count as pageviews
STATIC_EXTENSIONS = frozenset(
    [
        "css", "js", "mjs", "map", "json", "xml", "txt",
        "png", "jpg", "jpeg", "gif", "webp", "avif", "svg", "ico", "bmp",
        "woff", "woff2", "ttf", "otf", "eot",
        "mp4", "webm", "mp3", "wav", "ogg",
        "zip", "gz", "tar", "rar", "7z", "pdf", "apk", "exe",
    ]
)  # fmt: skip

# Path prefixes that are not pages
EXCLUDED_PATH_PREFIXES = (
    "/api/",
    "/static/",
    "/assets/",
    "/_next/",
    "/wp-admin/",
    "/wp-json/",
)

EXCLUDED_PATHS = frozenset(["/favicon.ico", "/robots.txt", "/sitemap.xml"])


def is_success_status(status_code: Optional[int]) -> bool:
    """
    Check if status code indicates success (2xx).

    Args:
        status_code: HTTP status code

    Returns:
        True if status is in 2xx range
    """
    return status_code is not None and 200 <= status_code < 300


def is_pageview_status(status_code: Optional[int]) -> bool:
    """Check if status code can count as a pageview (2xx or 304 Not Modified)."""
    return is_success_status(status_code) or status_code == 304


def is_static_path(path: str) -> bool:
    """
    Check if a request path points at a static asset.

    Query strings and fragments are ignored.

    Examples:
        >>> is_static_path("/css/site.css?v=3")
        True
        >>> is_static_path("/blog/post")
        False
    """
    path = path.split("?", 1)[0].split("#", 1)[0]
    last_segment = path.rsplit("/", 1)[-1]
    if "." not in last_segment:
        return False
    return last_segment.rsplit(".", 1)[-1].lower() in STATIC_EXTENSIONS


def should_count_as_pageview(status_code: int, path: str, ip: str) -> bool:
    """
    Decide whether a request counts as a pageview.

    Args:
        status_code: HTTP response status
        path: Decoded request path (may include a query string)
        ip: Client address

    Returns:
        True when the request is a successful page request from a known address
    """
    if not ip or not is_pageview_status(status_code):
        return False

    if not path or not path.startswith("/"):
        return False

    bare_path = path.split("?", 1)[0]
    if bare_path in EXCLUDED_PATHS or bare_path.startswith(EXCLUDED_PATH_PREFIXES):
        return False

    return not is_static_path(bare_path)
