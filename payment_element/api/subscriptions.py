"""
Subscription routes. The ``customer`` cookie set by ``/create-customer``
identifies the simulated session for ``/list``.
"""
import stripe
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from payment_element.api.deps import SESSION_COOKIE, get_session_customer, get_settings, get_stripe_client
from payment_element.core.config import Settings
from payment_element.core.errors import PaymentAPIError
from payment_element.schemas.payments import (
    CancelSubscriptionRequest,
    CreateSubscriptionRequest,
    CustomerResponse,
    InvoicePreviewResponse,
    SubscriptionCreatedResponse,
    SubscriptionCustomerRequest,
    SubscriptionListResponse,
    SubscriptionResponse,
    UpdateSubscriptionRequest,
)
from payment_element.services import orchestrator

router = APIRouter()


def _resolve_price(settings: Settings, lookup_key: str) -> str:
    price_id = settings.get_price_for_lookup_key(lookup_key)
    if not price_id:
        raise PaymentAPIError(f"Unknown price lookup key: {lookup_key}")
    return price_id


@router.post("/create-customer", response_model=CustomerResponse)
def create_customer(
    body: SubscriptionCustomerRequest,
    client: stripe.StripeClient = Depends(get_stripe_client),
):
    customer = orchestrator.create_subscription_customer(client, body.email)
    response = JSONResponse(content={"customer": customer.to_dict()})
    response.set_cookie(SESSION_COOKIE, customer.id, httponly=True, samesite="lax")
    return response


@router.post("/create-subscription", response_model=SubscriptionCreatedResponse)
def create_subscription(
    body: CreateSubscriptionRequest,
    client: stripe.StripeClient = Depends(get_stripe_client),
):
    subscription_id, client_secret = orchestrator.create_subscription(
        client,
        customer_id=body.customer_id,
        price_id=body.price_id,
    )
    return SubscriptionCreatedResponse(subscription_id=subscription_id, client_secret=client_secret)


@router.get("/invoice-preview", response_model=InvoicePreviewResponse)
def invoice_preview(
    subscription_id: str = Query(..., alias="subscriptionId"),
    new_price_lookup_key: str = Query(..., alias="newPriceLookupKey"),
    settings: Settings = Depends(get_settings),
    client: stripe.StripeClient = Depends(get_stripe_client),
):
    price_id = _resolve_price(settings, new_price_lookup_key)
    invoice = orchestrator.preview_invoice(client, subscription_id, price_id)
    return {"invoice": invoice.to_dict()}


@router.post("/cancel-subscription", response_model=SubscriptionResponse)
def cancel_subscription(
    body: CancelSubscriptionRequest,
    client: stripe.StripeClient = Depends(get_stripe_client),
):
    subscription = orchestrator.cancel_subscription(client, body.subscription_id)
    return {"subscription": subscription.to_dict()}


@router.post("/update-subscription", response_model=SubscriptionResponse)
def update_subscription(
    body: UpdateSubscriptionRequest,
    settings: Settings = Depends(get_settings),
    client: stripe.StripeClient = Depends(get_stripe_client),
):
    price_id = _resolve_price(settings, body.new_price_lookup_key)
    subscription = orchestrator.update_subscription_price(client, body.subscription_id, price_id)
    return {"subscription": subscription.to_dict()}


@router.get("/list", response_model=SubscriptionListResponse)
def list_subscriptions(
    customer_id: str = Depends(get_session_customer),
    client: stripe.StripeClient = Depends(get_stripe_client),
):
    subscriptions = orchestrator.list_subscriptions(client, customer_id)
    return {"subscriptions": [s.to_dict() for s in subscriptions]}
