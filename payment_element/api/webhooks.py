"""
Stripe webhook receiver.
Verifies the signature when a secret is configured, then dispatches the event.
"""
import logging
from typing import Optional

import stripe
from fastapi import APIRouter, Depends, Header, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from payment_element.api.deps import get_optional_stripe_client, get_settings
from payment_element.core.config import Settings
from payment_element.services.webhooks import (
    WebhookPayloadError,
    WebhookSignatureError,
    decode_event,
    dispatch_event,
    verify_signature,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    client: Optional[stripe.StripeClient] = Depends(get_optional_stripe_client),
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
):
    """
    Handle Stripe webhook events.

    - With STRIPE_WEBHOOK_SECRET set, a bad or missing signature answers 400
      and nothing is processed
    - Without it the body is trusted as-is (local development only)
    - Every other outcome answers 200 so Stripe does not redeliver
    """
    body = await request.body()

    if settings.STRIPE_WEBHOOK_SECRET:
        try:
            verify_signature(body, stripe_signature, settings.STRIPE_WEBHOOK_SECRET)
        except WebhookSignatureError as e:
            logger.warning(f"[WEBHOOK] Signature verification failed: {e}")
            return Response(status_code=400)
    else:
        logger.warning(
            "[WEBHOOK] STRIPE_WEBHOOK_SECRET not configured; accepting unverified event. "
            "This is insecure and meant for local development only"
        )

    try:
        event = decode_event(body)
    except WebhookPayloadError as e:
        logger.error(f"[WEBHOOK] {e}")
        return Response(status_code=200, content="Invalid payload")

    logger.info(f"[WEBHOOK] Received {event.type_tag} ({event.id})")
    # Handlers are blocking Stripe calls; keep them off the event loop
    await run_in_threadpool(dispatch_event, client, event)
    return Response(status_code=200, content="Webhook received")
