"""Login attempt routes (QR challenge and OTP delivery/verification)."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.util import get_remote_address

from wa2fa.constants import Attempts
from wa2fa.services.login_flow import LoginFlowService
from web.dependencies import get_login_flow

router = APIRouter(prefix="/api/wa2fa/attempts", tags=["attempts"])
limiter = Limiter(key_func=get_remote_address)


class StartAttemptRequest(BaseModel):
    """Start attempt request model."""

    phone: str = Field(..., description="Phone number in international format")
    language: Optional[str] = Field(None, description="Short language code, e.g. 'en'")
    username: Optional[str] = Field(None, description="Account name shown in login notifications")


class SendOtpRequest(BaseModel):
    resend: bool = False


class VerifyOtpRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=16)


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit(Attempts.START_RATE_LIMIT)
async def start_attempt(
    request: Request,
    body: StartAttemptRequest,
    login_flow: LoginFlowService = Depends(get_login_flow),
) -> Dict[str, Any]:
    """
    Start a second-factor login attempt.

    Issues the QR challenge when QR is enabled, otherwise sends the OTP.
    Caller address and browser are kept for the login notification.

    Args:
        request: FastAPI request object (required for rate limiter)
    """
    return login_flow.start_attempt(
        body.phone,
        body.language,
        username=body.username,
        client_ip=get_remote_address(request),
        user_agent=request.headers.get("User-Agent"),
    )


@router.get("/{attempt_id}")
async def get_attempt(
    attempt_id: str, login_flow: LoginFlowService = Depends(get_login_flow)
) -> Dict[str, Any]:
    return login_flow.get_status(attempt_id)


@router.post("/{attempt_id}/qr")
async def issue_qr(
    attempt_id: str, login_flow: LoginFlowService = Depends(get_login_flow)
) -> Dict[str, Any]:
    """Issue the QR challenge, reusing a still-valid token on page refresh."""
    return login_flow.issue_qr(attempt_id)


@router.post("/{attempt_id}/qr/complete")
async def complete_qr(
    attempt_id: str, login_flow: LoginFlowService = Depends(get_login_flow)
) -> Dict[str, Any]:
    """Complete the attempt after the poll reported ``verified``."""
    return login_flow.complete_qr(attempt_id)


@router.post("/{attempt_id}/otp", status_code=status.HTTP_202_ACCEPTED)
@limiter.limit(Attempts.OTP_SEND_RATE_LIMIT)
async def send_otp(
    request: Request,
    attempt_id: str,
    body: Optional[SendOtpRequest] = None,
    login_flow: LoginFlowService = Depends(get_login_flow),
) -> Dict[str, Any]:
    """
    Send (or resend) the OTP; delivery happens in the background.

    Args:
        request: FastAPI request object (required for rate limiter)
    """
    return login_flow.send_otp(attempt_id, resend=bool(body and body.resend))


@router.post("/{attempt_id}/otp/verify")
async def verify_otp(
    attempt_id: str,
    body: VerifyOtpRequest,
    login_flow: LoginFlowService = Depends(get_login_flow),
) -> Dict[str, Any]:
    return login_flow.verify_otp(attempt_id, body.code)


@router.delete("/{attempt_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_attempt(
    attempt_id: str, login_flow: LoginFlowService = Depends(get_login_flow)
) -> Response:
    login_flow.cancel(attempt_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
