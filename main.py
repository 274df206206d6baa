#!/usr/bin/env python3
"""
wa2fa - WhatsApp phone-number second factor.

Main entry point for the application.
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv


def parse_safe_port(default: int = 8000) -> int:
    """Read UVICORN_PORT, falling back to the default for invalid values."""
    try:
        port = int(os.getenv("UVICORN_PORT", str(default)))
    except (ValueError, TypeError):
        return default
    return port if 1 <= port <= 65535 else default


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="wa2fa - WhatsApp second-factor service")
    parser.add_argument("--env-file", default=".env", help="Path to .env file")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (defaults to LOG_LEVEL from settings)",
    )
    parser.add_argument("--logs-dir", default=None, help="Directory for log files")

    args = parser.parse_args()

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)

    import uvicorn

    from wa2fa.core.config import get_settings
    from wa2fa.core.logger import setup_structured_logging
    from web.app import create_app

    try:
        settings = get_settings()
    except Exception as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    json_logging = os.getenv("JSON_LOGGING", "true").lower() == "true"
    setup_structured_logging(
        args.log_level or settings.log_level, json_format=json_logging,
        logs_dir=Path(args.logs_dir) if args.logs_dir else None,
    )
    logger = logging.getLogger(__name__)

    # Security: Default to localhost only. Set UVICORN_HOST=0.0.0.0 to bind to all interfaces.
    host = os.getenv("UVICORN_HOST", "127.0.0.1")
    port = parse_safe_port()
    logger.info(f"Starting wa2fa ({settings.env}) on {host}:{port}")
    uvicorn.run(create_app(settings=settings), host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
