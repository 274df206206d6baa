"""Centralized environment detection.

Single source of truth for environment-related logic across the application.
"""

import os
from typing import FrozenSet


class Environment:
    """Environment names and detection helpers."""

    PRODUCTION = "production"
    STAGING = "staging"
    DEVELOPMENT = "development"
    TESTING = "testing"

    # All valid environment names (whitelist)
    VALID: FrozenSet[str] = frozenset({"production", "staging", "development", "testing"})

    # Environments that get verbose logs and relaxed webhook checks
    _NON_PROD: FrozenSet[str] = frozenset({"development", "testing"})

    @classmethod
    def current(cls) -> str:
        """Get the current environment name, validated and lowercased.

        Returns:
            Validated environment name. Defaults to 'production' for unknown values.
        """
        env = os.getenv("ENV", cls.PRODUCTION).lower()
        if env not in cls.VALID:
            return cls.PRODUCTION
        return env

    @classmethod
    def is_production(cls) -> bool:
        """Check if the current environment is production-like (production or staging)."""
        return cls.current() not in cls._NON_PROD

    @classmethod
    def is_development(cls) -> bool:
        return cls.current() == cls.DEVELOPMENT

    @classmethod
    def is_testing(cls) -> bool:
        return cls.current() == cls.TESTING
