"""
User-agent classification.

Parses user-agent strings into browser, operating system and device
labels using ordered, pre-compiled pattern tables.
"""

import re
from dataclasses import dataclass
from typing import Optional

UNKNOWN = "Unknown"

DEVICE_BOT = "Bot"
DEVICE_MOBILE = "Mobile"
DEVICE_TABLET = "Tablet"
DEVICE_DESKTOP = "Desktop"


@dataclass(frozen=True)
class UserAgentInfo:
    """Result of user-agent classification."""

    browser: str
    os: str
    device: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary."""
        return {
            "browser": self.browser,
            "os": self.os,
            "device": self.device,
        }


# Order matters: more specific tokens must come before the engines they embed
# (Edge and Opera both advertise Chrome, Chrome advertises Safari).
_BROWSER_PATTERNS: list[tuple[str, re.Pattern]] = [
    (name, re.compile(pattern, re.IGNORECASE))
    for name, pattern in [
        ("Edge", r"\bEdg(?:e|A|iOS)?/"),
        ("Opera", r"\bOPR/|\bOpera\b"),
        ("WeChat", r"\bMicroMessenger/"),
        ("QQ Browser", r"\bMQQBrowser/|\bQQBrowser/"),
        ("UC Browser", r"\bUCBrowser/"),
        ("Samsung Internet", r"\bSamsungBrowser/"),
        ("Firefox", r"\bFirefox/|\bFxiOS/"),
        ("Chrome", r"\bChrome/|\bCriOS/"),
        ("Safari", r"\bVersion/[\d.]+.*\bSafari/"),
        ("Internet Explorer", r"\bMSIE\b|\bTrident/"),
        ("curl", r"^curl/"),
        ("Python", r"python-requests|python-urllib|aiohttp|httpx"),
    ]
]

_OS_PATTERNS: list[tuple[str, re.Pattern]] = [
    (name, re.compile(pattern, re.IGNORECASE))
    for name, pattern in [
        ("HarmonyOS", r"\bHarmonyOS\b|\bOpenHarmony\b"),
        ("Android", r"\bAndroid\b"),
        ("iOS", r"\biPhone\b|\biPad\b|\biPod\b"),
        ("Windows", r"\bWindows\b"),
        ("macOS", r"\bMac OS X\b|\bMacintosh\b"),
        ("Chrome OS", r"\bCrOS\b"),
        ("Linux", r"\bLinux\b|\bX11\b"),
    ]
]

# Crawlers, monitors and HTTP libraries
_BOT_PATTERN = re.compile(
    r"bot\b|crawl|spider|slurp|bingpreview|facebookexternalhit|"
    r"headless|lighthouse|uptime|monitor|^curl/|^wget/|python-|"
    r"go-http-client|java/|okhttp|httpx|scrapy",
    re.IGNORECASE,
)

_TABLET_PATTERN = re.compile(r"\biPad\b|\bTablet\b|Android(?!.*\bMobile\b)", re.IGNORECASE)
_MOBILE_PATTERN = re.compile(r"\bMobile\b|\biPhone\b|\biPod\b|\bWindows Phone\b", re.IGNORECASE)


def _first_match(user_agent: str, patterns: list[tuple[str, re.Pattern]]) -> str:
    for name, pattern in patterns:
        if pattern.search(user_agent):
            return name
    return UNKNOWN


def is_bot(user_agent: Optional[str]) -> bool:
    """
    Check if a user-agent belongs to a crawler or automated client.

    Args:
        user_agent: The HTTP User-Agent header value

    Returns:
        True for known crawler/library signatures
    """
    if not user_agent:
        return False
    return _BOT_PATTERN.search(user_agent) is not None


def classify_device(user_agent: Optional[str]) -> str:
    """Classify the device type of a user-agent."""
    if not user_agent:
        return UNKNOWN
    if is_bot(user_agent):
        return DEVICE_BOT
    if _TABLET_PATTERN.search(user_agent):
        return DEVICE_TABLET
    if _MOBILE_PATTERN.search(user_agent):
        return DEVICE_MOBILE
    return DEVICE_DESKTOP


def parse_user_agent(user_agent: Optional[str]) -> UserAgentInfo:
    """
    Classify a user-agent string.

    Args:
        user_agent: The HTTP User-Agent header value

    Returns:
        UserAgentInfo; unknown parts are labelled "Unknown"

    Examples:
        >>> info = parse_user_agent(
        ...     "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        ...     "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36"
        ... )
        >>> (info.browser, info.os, info.device)
        ('Chrome', 'Windows', 'Desktop')
    """
    if not user_agent or user_agent == "-":
        return UserAgentInfo(browser=UNKNOWN, os=UNKNOWN, device=UNKNOWN)

    return UserAgentInfo(
        browser=_first_match(user_agent, _BROWSER_PATTERNS),
        os=_first_match(user_agent, _OS_PATTERNS),
        device=classify_device(user_agent),
    )
