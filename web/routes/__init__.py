"""Routes package for the wa2fa web application."""

from .attempts import router as attempts_router
from .enrollments import router as enrollments_router
from .health import router as health_router
from .webhook import router as webhook_router

__all__ = [
    "attempts_router",
    "enrollments_router",
    "health_router",
    "webhook_router",
]
