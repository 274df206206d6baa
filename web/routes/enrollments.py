"""Phone enrollment routes (verify a newly set or changed phone number).

The challenge itself is driven through the attempt routes: OTP send and
verify, QR issue and complete all accept an enrollment ID.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.util import get_remote_address

from wa2fa.constants import Attempts
from wa2fa.services.login_flow import LoginFlowService
from web.dependencies import get_login_flow

router = APIRouter(prefix="/api/wa2fa/enrollments", tags=["enrollments"])
limiter = Limiter(key_func=get_remote_address)


class StartEnrollmentRequest(BaseModel):
    """Start enrollment request model."""

    phone: str = Field(..., description="New phone number (national numbers use the default country code)")
    language: Optional[str] = Field(None, description="Short language code, e.g. 'en'")


class ChangePhoneRequest(BaseModel):
    phone: str = Field(..., description="Replacement phone number")


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit(Attempts.START_RATE_LIMIT)
async def start_enrollment(
    request: Request,
    body: StartEnrollmentRequest,
    login_flow: LoginFlowService = Depends(get_login_flow),
) -> Dict[str, Any]:
    """
    Start verifying a phone number.

    Args:
        request: FastAPI request object (required for rate limiter)
    """
    return login_flow.start_enrollment(body.phone, body.language)


@router.put("/{attempt_id}/phone")
@limiter.limit(Attempts.START_RATE_LIMIT)
async def change_phone(
    request: Request,
    attempt_id: str,
    body: ChangePhoneRequest,
    login_flow: LoginFlowService = Depends(get_login_flow),
) -> Dict[str, Any]:
    """
    Switch an open enrollment to another number and issue a new challenge.

    Args:
        request: FastAPI request object (required for rate limiter)
    """
    return login_flow.change_phone(attempt_id, body.phone)
