"""Global error handling middleware for the wa2fa web application."""

import traceback
from typing import Any, Callable, Dict, cast

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from ..core.exceptions import ValidationError, Wa2faError

PROBLEM_JSON = "application/problem+json"


def problem_response(error: Wa2faError, request: Request) -> JSONResponse:
    """Render a wa2fa error as an RFC 7807 problem document."""
    content: Dict[str, Any] = {
        "type": error.error_type_uri,
        "title": error.title,
        "status": error.http_status,
        "detail": error.message,
        "instance": request.url.path,
        "recoverable": error.recoverable,
    }
    # Extension members
    if error.details:
        content.update(error.details)

    return JSONResponse(status_code=error.http_status, content=content, media_type=PROBLEM_JSON)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Global error handling middleware with consistent JSON responses.

    Catches all unhandled exceptions and returns RFC 7807 problem responses.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            response = await call_next(request)
            return cast(Response, response)
        except ValidationError as e:
            logger.warning(f"Validation error: {e.message} (field={e.field})")
            return problem_response(e, request)
        except Wa2faError as e:
            log = logger.warning if e.http_status < 500 else logger.error
            log(
                f"wa2fa error: {e.__class__.__name__}: {e.message} "
                f"(recoverable={e.recoverable}, path={request.url.path})"
            )
            return problem_response(e, request)
        except Exception as e:
            return self._handle_unexpected_error(e, request)

    def _handle_unexpected_error(self, error: Exception, request: Request) -> JSONResponse:
        """Handle unexpected errors. Must not leak internal details."""
        logger.error(
            f"Unexpected error on {request.url.path}: {error}\n{traceback.format_exc()}"
        )

        content = {
            "type": "urn:wa2fa:error:internal-server",
            "title": "Internal Server Error",
            "status": 500,
            "detail": "An unexpected error occurred. Please try again later.",
            "instance": request.url.path,
        }
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=content,
            media_type=PROBLEM_JSON,
        )
