"""Middleware package for FastAPI application."""

from .correlation import CorrelationMiddleware, get_correlation_id
from .error_handler import ErrorHandlerMiddleware, problem_response

__all__ = [
    "CorrelationMiddleware",
    "ErrorHandlerMiddleware",
    "get_correlation_id",
    "problem_response",
]
