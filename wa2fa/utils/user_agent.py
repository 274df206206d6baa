"""User-Agent summaries for login notifications."""

import re
from typing import Optional, Tuple

# Order matters: Edge and Opera also carry "Chrome/"
_BROWSERS: Tuple[Tuple[str, str], ...] = (
    ("Edg/", "Edge"),
    ("OPR/", "Opera"),
    ("Firefox/", "Firefox"),
    ("Chrome/", "Chrome"),
    ("Version/", "Safari"),
)

_WINDOWS = {"10.0": "Windows 10/11", "6.3": "Windows 8.1", "6.1": "Windows 7"}


def _major_version(user_agent: str, marker: str) -> str:
    match = re.search(re.escape(marker) + r"(\d+)", user_agent)
    return match.group(1) if match else ""


def _browser(user_agent: str) -> str:
    if "MSIE" in user_agent or "Trident/" in user_agent:
        return "Internet Explorer"
    for marker, name in _BROWSERS:
        if marker in user_agent:
            if name == "Chrome" and "Chromium" in user_agent:
                continue
            if name == "Safari" and "Safari/" not in user_agent:
                continue
            return f"{name} {_major_version(user_agent, marker)}".strip()
    return "Unknown Browser"


def _os(user_agent: str) -> str:
    ios = re.search(r"OS (\d+)[_.](\d+)", user_agent)
    if "iPhone" in user_agent:
        return f"iPhone (iOS {ios.group(1)}.{ios.group(2)})" if ios else "iPhone"
    if "iPad" in user_agent:
        return f"iPad (iPadOS {ios.group(1)}.{ios.group(2)})" if ios else "iPad"
    if "Android" in user_agent:
        return f"Android {_major_version(user_agent, 'Android ')}".strip()
    windows = re.search(r"Windows NT (\d+\.\d+)", user_agent)
    if windows:
        return _WINDOWS.get(windows.group(1), "Windows")
    mac = re.search(r"Mac OS X (\d+)[_.](\d+)", user_agent)
    if mac:
        return f"macOS {mac.group(1)}.{mac.group(2)}"
    if "Mac OS X" in user_agent:
        return "macOS"
    if "CrOS" in user_agent:
        return "Chrome OS"
    if "Linux" in user_agent:
        return "Linux"
    return "Unknown OS"


def describe_user_agent(user_agent: Optional[str]) -> str:
    """
    Summarize a User-Agent header, e.g. "Chrome 120 on Windows 10/11".

    Args:
        user_agent: Raw header value

    Returns:
        Browser and OS summary, or "unknown" for an empty header
    """
    if not user_agent or not user_agent.strip():
        return "unknown"
    return f"{_browser(user_agent)} on {_os(user_agent)}"
