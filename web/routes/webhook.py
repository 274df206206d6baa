"""WhatsApp webhook, QR status poll and identity confirmation routes."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from loguru import logger
from pydantic import ValidationError as PydanticValidationError
from slowapi import Limiter
from slowapi.util import get_remote_address

from wa2fa.constants import Webhook
from wa2fa.services.webhook import ConfirmOutcome, WebhookPayload, WebhookService
from web.dependencies import get_webhook_service, verify_webhook_request

router = APIRouter(prefix="/api/wa2fa", tags=["webhook"])
limiter = Limiter(key_func=get_remote_address)

RECEIVED = {"status": "received"}


@router.get("/webhook", response_class=PlainTextResponse)
@limiter.limit(Webhook.HANDSHAKE_RATE_LIMIT)
async def verify_webhook(
    request: Request,
    mode: Optional[str] = Query(None, alias="hub.mode"),
    verify_token: Optional[str] = Query(None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
    webhook_service: WebhookService = Depends(get_webhook_service),
) -> PlainTextResponse:
    """
    Meta subscription handshake (echoes hub.challenge when the token matches).

    Args:
        request: FastAPI request object (required for rate limiter)
    """
    status_code, body = webhook_service.verify_subscription(mode, verify_token, challenge)
    return PlainTextResponse(body, status_code=status_code)


@router.post("/webhook")
async def receive_message(
    raw_body: bytes = Depends(verify_webhook_request),
    webhook_service: WebhookService = Depends(get_webhook_service),
) -> Dict[str, str]:
    """
    Receive inbound WhatsApp messages.

    Always answers 200 once the signature checks out, so there is no rate
    limit here; Meta retries anything else. Replies to the user go out on
    the background dispatcher.
    """
    try:
        payload = WebhookPayload.model_validate_json(raw_body)
    except PydanticValidationError as e:
        logger.warning(f"Ignoring malformed webhook payload: {e.error_count()} error(s)")
        return RECEIVED

    try:
        webhook_service.process_payload(payload)
    except Exception as e:
        logger.error(f"Error processing WhatsApp webhook: {e}")

    return RECEIVED


@router.get("/qr-status")
@limiter.limit(Webhook.POLL_RATE_LIMIT)
async def qr_status(
    request: Request,
    token: Optional[str] = None,
    webhook_service: WebhookService = Depends(get_webhook_service),
) -> Dict[str, Any]:
    """
    Poll QR verification status.

    Returns ``{"status": "not_found|pending|pending_confirm|verified|expired"}``
    plus ``phone`` once verified.

    Args:
        request: FastAPI request object (required for rate limiter)
    """
    return webhook_service.poll_status(token)


@router.get("/confirm")
async def confirm_identity(
    token: str,
    sender: str,
    sig: str,
    webhook_service: WebhookService = Depends(get_webhook_service),
) -> JSONResponse:
    """Identity confirmation link sent to pseudonymous senders."""
    outcome = webhook_service.confirm_link(token, sender, sig)
    status_code = {
        ConfirmOutcome.VERIFIED: 200,
        ConfirmOutcome.INVALID_SIGNATURE: 403,
        ConfirmOutcome.NOT_FOUND: 404,
    }[outcome]
    return JSONResponse({"status": outcome.value}, status_code=status_code)
