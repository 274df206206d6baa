"""Pytest configuration and common fixtures."""

import os
import sys
import warnings
from pathlib import Path

from dotenv import load_dotenv

# Try to load test-specific environment file if it exists
test_env_file = Path(__file__).parent / ".env.test"
if test_env_file.exists():
    load_dotenv(test_env_file)

# Set before any wa2fa import so settings resolve to the testing environment
os.environ.setdefault("ENV", "testing")

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from wa2fa.core.config import Wa2faSettings, reset_settings
from wa2fa.services.verification import reset_verification_store

TEST_APP_SECRET = "s3cret"
BUSINESS_PHONE = "+1 (555) 000-9999"


def pytest_configure(config):
    """Configure pytest environment before tests run."""
    warnings.filterwarnings("ignore", message="coroutine.*was never awaited")


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Isolate every test from the host environment and from global singletons."""
    for key in list(os.environ):
        if key.startswith("WA2FA_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("ENV", "testing")
    reset_settings()
    reset_verification_store()

    from web.routes.attempts import limiter as attempts_limiter
    from web.routes.enrollments import limiter as enrollments_limiter
    from web.routes.webhook import limiter as webhook_limiter

    for limiter in (attempts_limiter, enrollments_limiter, webhook_limiter):
        limiter.reset()

    yield

    reset_settings()
    reset_verification_store()


class FakeClock:
    """Controllable replacement for time.time()."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock(monkeypatch):
    """Patch time.time with a clock the test can advance."""
    fake = FakeClock()
    monkeypatch.setattr("time.time", fake)
    return fake


@pytest.fixture
def settings():
    """Settings with both methods on, messaging configured and a known app secret."""
    return Wa2faSettings(
        _env_file=None,
        access_token="test-access-token",
        phone_number_id="123456789",
        business_phone=BUSINESS_PHONE,
        qr_enabled=True,
        otp_enabled=True,
        token_namespace="acme",
        app_secret=TEST_APP_SECRET,
        link_signing_key="link-signing-key",
        public_base_url="https://auth.example.com/",
    )
