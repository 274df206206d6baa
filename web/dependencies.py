"""Shared dependencies for the wa2fa web application.

Services are built once per application in ``create_app`` and stored on
``app.state``; route handlers reach them through these functions.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from loguru import logger

from wa2fa.constants import Webhook
from wa2fa.core.config import Wa2faSettings
from wa2fa.services.login_flow import LoginFlowService
from wa2fa.services.verification import VerificationStore
from wa2fa.services.webhook import WebhookService


def get_app_settings(request: Request) -> Wa2faSettings:
    return request.app.state.settings


def get_store(request: Request) -> VerificationStore:
    return request.app.state.verification_store


def get_webhook_service(request: Request) -> WebhookService:
    return request.app.state.webhook_service


def get_login_flow(request: Request) -> LoginFlowService:
    return request.app.state.login_flow


async def verify_webhook_request(
    request: Request,
    x_hub_signature_256: Optional[str] = Header(None, alias=Webhook.SIGNATURE_HEADER),
    webhook_service: WebhookService = Depends(get_webhook_service),
) -> bytes:
    """
    Verify the Meta signature of a webhook POST before it is parsed.

    Returns:
        Raw request body

    Raises:
        HTTPException: 401 if the signature is missing or invalid
    """
    body = await request.body()
    if not webhook_service.authenticate(body, x_hub_signature_256):
        client_ip = request.client.host if request.client else "unknown"
        logger.warning(f"Rejecting webhook POST from {client_ip}: invalid {Webhook.SIGNATURE_HEADER}")
        raise HTTPException(status_code=401, detail="invalid_signature")
    return body
