"""
Stripe webhook verification, decoding and dispatch.

Verification is done against the raw request body before anything is decoded.
Handlers run after verification and may fail; failures are logged and never
change the acknowledgement sent back to Stripe.
"""
import json
import logging
from typing import Any, Callable, Dict, Optional, Union

import stripe
from pydantic import ValidationError

from payment_element.schemas.webhook import EventType, WebhookEvent

logger = logging.getLogger(__name__)

Handler = Callable[[Optional[stripe.StripeClient], WebhookEvent], None]


class WebhookSignatureError(Exception):
    """The Stripe-Signature header is missing or does not match the body."""


class WebhookPayloadError(Exception):
    """The body is not a JSON event envelope."""


def verify_signature(payload: bytes, signature: Optional[str], secret: str) -> None:
    """Raise WebhookSignatureError unless ``signature`` signs ``payload`` with ``secret``."""
    if not signature:
        raise WebhookSignatureError("Missing Stripe-Signature header")
    try:
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(
            payload,
            signature,
            secret,
            stripe.Webhook.DEFAULT_TOLERANCE,
        )
    except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
        raise WebhookSignatureError(str(e)) from e


def decode_event(payload: Union[bytes, str, Dict[str, Any]]) -> WebhookEvent:
    """Decode a JSON envelope into a WebhookEvent with a closed ``type``."""
    if isinstance(payload, (bytes, str)):
        try:
            payload = json.loads(payload)
        except (UnicodeDecodeError, ValueError) as e:
            raise WebhookPayloadError(f"Invalid JSON payload: {e}") from e
    if not isinstance(payload, dict):
        raise WebhookPayloadError("Event payload must be a JSON object")

    tag = payload.get("type")
    request = payload.get("request")
    # Older API versions send the request id as a bare string
    if isinstance(request, dict):
        request_id = request.get("id")
    else:
        request_id = request

    data = payload.get("data")
    try:
        return WebhookEvent(
            id=payload.get("id"),
            type=EventType.from_tag(tag),
            type_tag=tag,
            data=data if isinstance(data, dict) else {},
            request_id=request_id,
        )
    except ValidationError as e:
        raise WebhookPayloadError(f"Malformed event envelope: {e}") from e


def _payment_succeeded(client, event: WebhookEvent) -> None:
    # Fulfillment trigger point: ship orders, e-mail receipts
    logger.info(f"[WEBHOOK] Payment captured: {event.object.get('id')}")


def _payment_failed(client, event: WebhookEvent) -> None:
    logger.info(f"[WEBHOOK] Payment failed: {event.object.get('id')}")


def _invoice_paid(client, event: WebhookEvent) -> None:
    invoice = event.object
    logger.info(f"[WEBHOOK] Invoice paid: {invoice.get('id')}")
    if invoice.get("billing_reason") != "subscription_create":
        return
    try:
        set_default_payment_method_from_invoice(client, invoice)
    except Exception as e:
        logger.error(f"[WEBHOOK] Could not set default payment method for invoice {invoice.get('id')}: {e}")


def _invoice_payment_failed(client, event: WebhookEvent) -> None:
    # Customer attempted to pay an invoice and the payment failed
    logger.info(f"[WEBHOOK] Invoice payment failed: {event.object.get('id')}")


def _subscription_deleted(client, event: WebhookEvent) -> None:
    subscription_id = event.object.get("id")
    if event.request_id:
        logger.info(f"[WEBHOOK] Subscription {subscription_id} canceled by request {event.request_id}")
    else:
        logger.info(f"[WEBHOOK] Subscription {subscription_id} canceled automatically by Stripe")


def _noop(client, event: WebhookEvent) -> None:
    pass


HANDLERS: Dict[EventType, Handler] = {
    EventType.PAYMENT_INTENT_SUCCEEDED: _payment_succeeded,
    EventType.PAYMENT_INTENT_PAYMENT_FAILED: _payment_failed,
    # Followed later by payment_intent.succeeded or payment_failed
    EventType.PAYMENT_INTENT_PROCESSING: _noop,
    EventType.INVOICE_PAID: _invoice_paid,
    EventType.INVOICE_PAYMENT_SUCCEEDED: _invoice_paid,
    EventType.INVOICE_PAYMENT_FAILED: _invoice_payment_failed,
    # Hook point for archiving finalized invoices
    EventType.INVOICE_FINALIZED: _noop,
    EventType.CUSTOMER_SUBSCRIPTION_DELETED: _subscription_deleted,
    EventType.UNKNOWN: _noop,
}


def set_default_payment_method_from_invoice(client: stripe.StripeClient, invoice: Dict[str, Any]) -> Optional[str]:
    """
    Make the payment method that paid ``invoice`` the subscription default.

    Returns the payment method id that was set, or None when the invoice
    carries no subscription or payment intent to work from.
    """
    if client is None:
        raise RuntimeError("Stripe client not configured")

    subscription_id = invoice.get("subscription")
    payment_intent_id = invoice.get("payment_intent")
    if isinstance(payment_intent_id, dict):
        payment_intent_id = payment_intent_id.get("id")
    if not subscription_id or not payment_intent_id:
        logger.warning(f"[WEBHOOK] Invoice {invoice.get('id')} has no subscription or payment intent; skipping")
        return None

    payment_intent = client.payment_intents.retrieve(payment_intent_id)
    payment_method = payment_intent.payment_method
    client.subscriptions.update(subscription_id, params={"default_payment_method": payment_method})
    logger.info(f"[WEBHOOK] Default payment method for subscription {subscription_id} set to {payment_method}")
    return payment_method


def dispatch_event(client: Optional[stripe.StripeClient], event: WebhookEvent) -> EventType:
    """Run the handler for ``event.type``. Handler errors are logged, not raised."""
    handler = HANDLERS.get(event.type, _noop)
    if event.type is EventType.UNKNOWN:
        logger.debug(f"[WEBHOOK] Unhandled event type {event.type_tag}")
    try:
        handler(client, event)
    except Exception as e:
        logger.exception(f"[WEBHOOK] Handler for {event.type_tag} ({event.id}) failed: {e}")
    return event.type
