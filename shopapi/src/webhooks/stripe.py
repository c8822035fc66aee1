"""
Stripe webhook route.

Mounted under ``/api/webhooks``. The handler reads the raw request bytes
itself and never declares a parsed body, so signature verification sees
exactly what Stripe signed.
"""

import json

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError

from shopapi.src.config import Settings
from shopapi.src.dependencies import get_app_settings, get_webhook_dispatcher
from shopapi.src.models import ErrorResponse, WebhookAck
from shopapi.src.webhooks.dispatcher import StripeEvent, WebhookDispatcher
from shopapi.src.webhooks.verification import verify_stripe_signature

logger = structlog.get_logger(__name__)

SIGNATURE_HEADER = "Stripe-Signature"

router = APIRouter(
    tags=["Webhooks"],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid signature or payload"},
    }
)


@router.post("/stripe", response_model=WebhookAck)
async def handle_stripe_webhook(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
) -> WebhookAck:
    """
    Receive a Stripe event.

    Verifies the Stripe-Signature header against the raw body, parses the
    event and hands it to the handlers registered for its type.

    Returns:
        Acknowledgement; ``handled`` tells whether a handler ran
    """
    payload: bytes = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)

    if not verify_stripe_signature(
        payload,
        signature,
        settings.stripe_webhook_secret,
        tolerance=settings.stripe_webhook_tolerance,
    ):
        logger.warning(
            "stripe_webhook_rejected",
            has_signature=signature is not None,
            size=len(payload)
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature"
        )

    try:
        event = StripeEvent.model_validate(json.loads(payload))
    except (ValueError, ValidationError) as e:
        logger.warning("stripe_webhook_invalid_payload", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload"
        )

    logger.info(
        "stripe_webhook_received",
        event_id=event.id,
        event_type=event.type,
        livemode=event.livemode
    )

    handled = await dispatcher.dispatch(event, request)
    return WebhookAck(received=True, handled=handled)
