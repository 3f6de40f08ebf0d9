"""Stripe webhook verification and event dispatch"""
import hashlib
import hmac
import json
import time

import pytest
import stripe

from payment_element.schemas.webhook import EventType
from payment_element.services import webhooks
from payment_element.services.webhooks import WebhookSignatureError, decode_event, verify_signature
from stripe_fixtures import WEBHOOK_SECRET, event_payload, sign_payload, stripe_object

SUBSCRIPTION_INVOICE = {
    "id": "in_1",
    "object": "invoice",
    "billing_reason": "subscription_create",
    "subscription": "sub_1",
    "payment_intent": "pi_1",
}


def _post(client, payload, signature=None):
    headers = {"Content-Type": "application/json"}
    if signature is not None:
        headers["Stripe-Signature"] = signature
    return client.post("/webhook", content=payload, headers=headers)


def test_signed_event_is_accepted(signed_client, stripe_client):
    payload = event_payload("payment_intent.succeeded", {"id": "pi_1", "object": "payment_intent"})

    response = _post(signed_client, payload, sign_payload(payload))
    assert response.status_code == 200


def test_bad_signature_is_rejected_without_side_effects(signed_client, stripe_client):
    payload = event_payload("invoice.payment_succeeded", SUBSCRIPTION_INVOICE)

    response = _post(signed_client, payload, sign_payload(payload, secret="whsec_wrong"))
    assert response.status_code == 400
    assert stripe_client.mock_calls == []


def test_missing_signature_is_rejected(signed_client, stripe_client):
    payload = event_payload("invoice.payment_succeeded", SUBSCRIPTION_INVOICE)

    response = _post(signed_client, payload)
    assert response.status_code == 400
    assert stripe_client.mock_calls == []


def test_tampered_body_is_rejected(signed_client, stripe_client):
    payload = event_payload("payment_intent.succeeded", {"id": "pi_1"})
    signature = sign_payload(payload)

    response = _post(signed_client, payload.replace("pi_1", "pi_2"), signature)
    assert response.status_code == 400


def test_stale_signature_is_rejected(signed_client):
    payload = event_payload("payment_intent.succeeded", {"id": "pi_1"})
    signature = sign_payload(payload, timestamp=int(time.time()) - 3600)

    response = _post(signed_client, payload, signature)
    assert response.status_code == 400


def test_subscription_invoice_sets_default_payment_method(signed_client, stripe_client):
    """The card that paid the first invoice becomes the subscription default"""
    stripe_client.payment_intents.retrieve.return_value = stripe_object({
        "id": "pi_1", "object": "payment_intent", "payment_method": "pm_card_visa",
    })
    payload = event_payload("invoice.payment_succeeded", SUBSCRIPTION_INVOICE)

    response = _post(signed_client, payload, sign_payload(payload))

    assert response.status_code == 200
    stripe_client.payment_intents.retrieve.assert_called_once_with("pi_1")
    stripe_client.subscriptions.update.assert_called_once_with(
        "sub_1", params={"default_payment_method": "pm_card_visa"}
    )


def test_renewal_invoice_leaves_subscription_alone(client, stripe_client):
    invoice = dict(SUBSCRIPTION_INVOICE, billing_reason="subscription_cycle")

    response = _post(client, event_payload("invoice.payment_succeeded", invoice))

    assert response.status_code == 200
    stripe_client.subscriptions.update.assert_not_called()


def test_legacy_invoice_paid_tag(client, stripe_client):
    stripe_client.payment_intents.retrieve.return_value = stripe_object({"id": "pi_1", "payment_method": "pm_1"})

    response = _post(client, event_payload("invoice_paid", SUBSCRIPTION_INVOICE))

    assert response.status_code == 200
    stripe_client.subscriptions.update.assert_called_once_with("sub_1", params={"default_payment_method": "pm_1"})


def test_failed_payment_method_update_still_acknowledged(signed_client, stripe_client):
    stripe_client.payment_intents.retrieve.side_effect = stripe.APIConnectionError("Connection reset")
    payload = event_payload("invoice.payment_succeeded", SUBSCRIPTION_INVOICE)

    response = _post(signed_client, payload, sign_payload(payload))

    assert response.status_code == 200
    stripe_client.subscriptions.update.assert_not_called()


def test_handler_exception_still_acknowledged(signed_client, monkeypatch):
    def explode(client, event):
        raise RuntimeError("handler bug")

    monkeypatch.setitem(webhooks.HANDLERS, EventType.PAYMENT_INTENT_SUCCEEDED, explode)
    payload = event_payload("payment_intent.succeeded", {"id": "pi_1"})

    response = _post(signed_client, payload, sign_payload(payload))
    assert response.status_code == 200


def test_unknown_event_type_is_ignored(signed_client, stripe_client):
    payload = event_payload("charge.dispute.created", {"id": "dp_1"})

    response = _post(signed_client, payload, sign_payload(payload))

    assert response.status_code == 200
    assert stripe_client.mock_calls == []


def test_unverified_mode_accepts_unsigned_body(client, stripe_client):
    response = _post(client, event_payload("payment_intent.payment_failed", {"id": "pi_1"}))
    assert response.status_code == 200


def test_invalid_json_is_acknowledged(client, stripe_client):
    response = _post(client, "not json")
    assert response.status_code == 200
    assert stripe_client.mock_calls == []


@pytest.mark.parametrize("tag,expected", [
    ("payment_intent.succeeded", EventType.PAYMENT_INTENT_SUCCEEDED),
    ("payment_intent.processing", EventType.PAYMENT_INTENT_PROCESSING),
    ("invoice.paid", EventType.INVOICE_PAID),
    ("invoice_paid", EventType.INVOICE_PAID),
    ("invoice.finalized", EventType.INVOICE_FINALIZED),
    ("customer.subscription.deleted", EventType.CUSTOMER_SUBSCRIPTION_DELETED),
    ("unknown", EventType.UNKNOWN),
    ("customer.created", EventType.UNKNOWN),
    (None, EventType.UNKNOWN),
])
def test_decode_event_type(tag, expected):
    event = decode_event(json.dumps({"id": "evt_1", "type": tag, "data": {"object": {}}}))
    assert event.type is expected
    assert event.type_tag == tag


def test_decode_event_request_marker():
    automatic = decode_event({"type": "customer.subscription.deleted", "request": {"id": None}})
    by_request = decode_event({"type": "customer.subscription.deleted", "request": {"id": "req_123"}})
    legacy = decode_event({"type": "customer.subscription.deleted", "request": "req_456"})

    assert automatic.request_id is None
    assert by_request.request_id == "req_123"
    assert legacy.request_id == "req_456"


def test_subscription_deleted_branches_on_request(caplog):
    caplog.set_level("INFO", logger="payment_element.services.webhooks")
    webhooks.dispatch_event(None, decode_event({
        "type": "customer.subscription.deleted", "data": {"object": {"id": "sub_1"}}, "request": {"id": "req_1"},
    }))
    webhooks.dispatch_event(None, decode_event({
        "type": "customer.subscription.deleted", "data": {"object": {"id": "sub_2"}}, "request": {"id": None},
    }))

    assert "sub_1 canceled by request req_1" in caplog.text
    assert "sub_2 canceled automatically" in caplog.text


def test_verify_signature_directly():
    payload = event_payload("payment_intent.succeeded", {"id": "pi_1"})
    verify_signature(payload.encode("utf-8"), sign_payload(payload), WEBHOOK_SECRET)

    with pytest.raises(WebhookSignatureError):
        verify_signature(payload.encode("utf-8"), None, WEBHOOK_SECRET)


@pytest.mark.parametrize("envelope", [
    {"id": "evt_1", "type": 5, "data": {"object": {}}},
    {"id": "evt_1", "type": ["payment_intent.succeeded"], "data": {"object": {}}},
    {"id": 123, "type": "payment_intent.succeeded", "data": {"object": {}}},
    {"id": "evt_1", "type": "customer.subscription.deleted", "request": {"id": 42}},
])
def test_signed_malformed_envelope_is_acknowledged(signed_client, stripe_client, envelope):
    payload = json.dumps(envelope)

    response = _post(signed_client, payload, sign_payload(payload))

    assert response.status_code == 200
    assert stripe_client.mock_calls == []


def test_decode_event_rejects_non_string_fields():
    with pytest.raises(webhooks.WebhookPayloadError):
        decode_event({"id": 123, "type": "payment_intent.succeeded"})
    with pytest.raises(webhooks.WebhookPayloadError):
        decode_event({"type": ["invoice.paid"]})


def test_non_utf8_body_fails_closed(signed_client, stripe_client):
    payload = b'{"type": "payment_intent.succeeded", "x": "\xff\xfe"}'
    timestamp = int(time.time())
    signature = hmac.new(WEBHOOK_SECRET.encode("utf-8"), f"{timestamp}.".encode("utf-8") + payload, hashlib.sha256)

    response = signed_client.post(
        "/webhook",
        content=payload,
        headers={"Content-Type": "application/json", "Stripe-Signature": f"t={timestamp},v1={signature.hexdigest()}"},
    )

    assert response.status_code == 400
    assert stripe_client.mock_calls == []


def test_verify_signature_rejects_non_utf8_body():
    with pytest.raises(WebhookSignatureError):
        verify_signature(b"\xff\xfe", sign_payload("ignored"), WEBHOOK_SECRET)


@pytest.mark.parametrize("event_type,obj", [
    ("invoice.payment_failed", {"id": "in_1", "object": "invoice", "subscription": "sub_1", "payment_intent": "pi_1"}),
    ("invoice.finalized", {"id": "in_1", "object": "invoice"}),
    ("payment_intent.processing", {"id": "pi_1", "object": "payment_intent"}),
    ("payment_intent.payment_failed", {"id": "pi_1", "object": "payment_intent"}),
    ("invoice.paid", dict(SUBSCRIPTION_INVOICE, billing_reason="manual")),
    ("customer.subscription.deleted", {"id": "sub_1", "object": "subscription"}),
])
def test_recognized_events_without_mutation(signed_client, stripe_client, event_type, obj):
    payload = event_payload(event_type, obj)

    response = _post(signed_client, payload, sign_payload(payload))

    assert response.status_code == 200
    assert stripe_client.mock_calls == []


def test_invoice_paid_for_new_subscription_updates_once(signed_client, stripe_client):
    stripe_client.payment_intents.retrieve.return_value = stripe_object({
        "id": "pi_1", "object": "payment_intent", "payment_method": "pm_card_visa",
    })
    payload = event_payload("invoice.paid", SUBSCRIPTION_INVOICE)

    response = _post(signed_client, payload, sign_payload(payload))

    assert response.status_code == 200
    stripe_client.payment_intents.retrieve.assert_called_once_with("pi_1")
    stripe_client.subscriptions.update.assert_called_once_with(
        "sub_1", params={"default_payment_method": "pm_card_visa"}
    )
