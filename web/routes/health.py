"""Health check route for the wa2fa web application."""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


def get_version() -> str:
    """
    Get application version from centralized source.

    Returns:
        Version string
    """
    from wa2fa import __version__

    return __version__


@router.get("/health")
async def health_check(request: Request) -> Dict[str, Any]:
    """
    Health check endpoint for monitoring and container orchestration.

    Returns:
        Store usage, attempt count, dispatcher state and enabled methods
    """
    state = request.app.state
    store_health = state.verification_store.health_check()
    dispatcher = state.dispatcher

    healthy = store_health["status"] == "healthy" and dispatcher.running
    return {
        "status": "healthy" if healthy else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": get_version(),
        "components": {
            "verification_store": store_health,
            "attempts": {"count": state.attempt_registry.count()},
            "dispatcher": {
                "running": dispatcher.running,
                "queue_depth": dispatcher.queue_depth,
                "processed": dispatcher.processed,
                "failed": dispatcher.failed,
                "dropped": dispatcher.dropped,
            },
        },
        "methods": {"otp": state.settings.otp_enabled, "qr": state.settings.qr_enabled},
        "messaging_configured": state.settings.messaging_configured,
    }
