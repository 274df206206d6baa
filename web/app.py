"""FastAPI application for the wa2fa second-factor service."""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from wa2fa import __version__
from wa2fa.constants import Attempts, Dispatcher, QRVerification
from wa2fa.core.config import Wa2faSettings, get_settings
from wa2fa.core.environment import Environment
from wa2fa.core.exceptions import ConfigurationError
from wa2fa.middleware import CorrelationMiddleware, ErrorHandlerMiddleware
from wa2fa.services.login_flow import AttemptRegistry, LoginFlowService
from wa2fa.services.messaging import (
    BackgroundDispatcher,
    MessageService,
    SmsClient,
    WhatsAppClient,
)
from wa2fa.services.otp import OtpCodeManager
from wa2fa.services.verification import VerificationStore
from wa2fa.services.webhook import IdentityLinkRegistry, WebhookService
from web.cors import validate_cors_origins
from web.routes import attempts_router, enrollments_router, health_router, webhook_router


async def _sweep_loop(app: FastAPI, interval: float) -> None:
    """Periodically drop expired challenges and login attempts."""
    while True:
        await asyncio.sleep(interval)
        try:
            removed = app.state.verification_store.cleanup_expired()
            expired = app.state.login_flow.cleanup_expired()
            if removed or expired:
                logger.debug(f"Sweep removed {removed} challenges, {expired} attempts")
        except Exception as e:
            logger.error(f"Expiry sweep failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager for startup and shutdown.

    Handles:
    - Background dispatcher for outbound messages
    - Periodic expiry sweep of challenges and attempts
    """
    logger.info("wa2fa application starting up...")
    dispatcher: BackgroundDispatcher = app.state.dispatcher
    await dispatcher.start()
    sweep_task = asyncio.create_task(
        _sweep_loop(app, QRVerification.CLEANUP_INTERVAL_SECONDS)
    )

    yield

    logger.info("wa2fa application shutting down...")
    sweep_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweep_task

    try:
        await asyncio.wait_for(dispatcher.stop(), timeout=5)
        logger.info("Background dispatcher stopped")
    except asyncio.TimeoutError:
        logger.warning("Background dispatcher stop timed out after 5s")


def create_app(
    env_override: Optional[str] = None, settings: Optional[Wa2faSettings] = None
) -> FastAPI:
    """
    Factory function to create FastAPI application instance.

    Args:
        env_override: Override environment name for testing (default: None)
        settings: Explicit settings; the process-wide settings are used if None

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()
    env = env_override if env_override is not None else settings.env
    _is_dev = env in (Environment.DEVELOPMENT, Environment.TESTING)

    app = FastAPI(
        title="wa2fa API",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if _is_dev else None,
        redoc_url="/redoc" if _is_dev else None,
        openapi_url="/openapi.json" if _is_dev else None,
        description=(
            "WhatsApp phone-number second factor: scan-to-verify QR challenges "
            "and delivered one-time codes."
        ),
        openapi_tags=[
            {"name": "webhook", "description": "WhatsApp webhook and QR status polling"},
            {"name": "attempts", "description": "Second-factor login attempts"},
            {"name": "enrollments", "description": "Phone number enrollment"},
            {"name": "health", "description": "Service health"},
        ],
    )

    # Services live on app.state so every request shares one store
    store = VerificationStore()
    dispatcher = BackgroundDispatcher(Dispatcher.POOL_SIZE, Dispatcher.MAX_QUEUE_SIZE)
    whatsapp = WhatsAppClient(
        settings.access_token.get_secret_value(),
        settings.phone_number_id,
        settings.api_version,
    )
    sms = SmsClient(settings.sms_fallback_url, settings.sms_fallback_method)
    messages = MessageService(
        whatsapp,
        sms,
        settings.template_otp,
        settings.template_login,
        settings.template_login_layout,
    )
    registry = AttemptRegistry(Attempts.TIMEOUT_SECONDS, Attempts.MAX_ATTEMPTS)

    app.state.settings = settings
    app.state.verification_store = store
    app.state.dispatcher = dispatcher
    app.state.attempt_registry = registry
    app.state.webhook_service = WebhookService(
        settings, store, dispatcher, IdentityLinkRegistry(), whatsapp, messages
    )
    app.state.login_flow = LoginFlowService(
        settings,
        store,
        registry,
        messages,
        dispatcher,
        OtpCodeManager(),
    )

    if not settings.messaging_configured:
        logger.warning("WhatsApp access token or phone number ID missing; replies are disabled")
    if settings.app_secret is None:
        logger.warning("WA2FA_APP_SECRET not set; webhook signatures are not verified")

    # Configure middleware (order matters!)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(CorrelationMiddleware)

    allowed_origins = validate_cors_origins(settings.cors_allowed_origins, env)
    if not allowed_origins and env == Environment.PRODUCTION:
        raise ConfigurationError(
            "No valid CORS origins configured for production. "
            "Set CORS_ALLOWED_ORIGINS (e.g. 'https://login.example.com')."
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Accept", "Accept-Language", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
        max_age=3600,
    )

    limiter = Limiter(key_func=get_remote_address)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.include_router(webhook_router)
    app.include_router(attempts_router)
    app.include_router(enrollments_router)
    app.include_router(health_router)

    return app
