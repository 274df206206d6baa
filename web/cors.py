"""CORS validation utilities for the wa2fa web application."""

import re
from typing import List

from loguru import logger

from wa2fa.core.environment import Environment

# Comprehensive localhost detection pattern
_LOCALHOST_PATTERN = re.compile(
    r"^https?://"
    r"(localhost(\.|:|/|$)|127\.0\.0\.1|(\[::1\]|::1)|0\.0\.0\.0)"
    r"(:\d+)?"
    r"(/.*)?$",
    re.IGNORECASE,
)


def _is_localhost_origin(origin: str) -> bool:
    """Check if origin is a localhost variant (including IPv6)."""
    if "://" in origin:
        hostname = origin.split("://", 1)[1].split(":")[0].split("/")[0].lower()
        # localhost.evil.com / app.localhost style subdomain bypass
        if hostname.startswith("localhost.") or hostname.endswith(".localhost"):
            return True
    return bool(_LOCALHOST_PATTERN.match(origin))


def validate_cors_origins(origins_str: str, env: str) -> List[str]:
    """
    Validate and parse CORS origins, blocking wildcard and localhost in production.

    Args:
        origins_str: Comma-separated list of allowed origins
        env: Environment name from settings

    Returns:
        List of validated origin strings

    Raises:
        ValueError: If wildcard is used in production environment
    """
    origins = [origin.strip() for origin in origins_str.split(",") if origin.strip()]

    if env == Environment.PRODUCTION and "*" in origins:
        raise ValueError("Wildcard CORS origin ('*') not allowed in production")

    if env not in (Environment.DEVELOPMENT, Environment.TESTING):
        invalid = [o for o in origins if o == "*" or _is_localhost_origin(o)]
        if invalid:
            logger.warning(f"Removing insecure CORS origins in {env}: {invalid}")
            origins = [o for o in origins if o not in invalid]

    return origins
