"""
One-off payment routes: publishable config, payment intents, customers,
products and quarterly invoices.
"""
from typing import Optional

import stripe
from fastapi import APIRouter, Depends, Query

from payment_element.api.deps import get_settings, get_stripe_client
from payment_element.core.config import Settings
from payment_element.schemas.payments import (
    ClientSecretResponse,
    ConfigResponse,
    CreateCustomerRequest,
    CreateProductRequest,
    CustomerCreatedResponse,
    InvoiceCreatedResponse,
    PriceCreatedResponse,
    QuarterlyInvoiceRequest,
)
from payment_element.services import orchestrator

router = APIRouter()


@router.get("/config", response_model=ConfigResponse)
def get_config(settings: Settings = Depends(get_settings)):
    """Publishable key for Stripe.js; null tells the front end to alert the user."""
    return ConfigResponse(publishable_key=settings.STRIPE_PUBLISHABLE_KEY)


@router.get("/create-payment-intent", response_model=ClientSecretResponse)
def create_payment_intent(
    customer_id: Optional[str] = Query(None, alias="customerId"),
    amount: Optional[int] = Query(None, gt=0),
    currency: Optional[str] = Query(None, pattern=r"^[A-Za-z]{3}$"),
    settings: Settings = Depends(get_settings),
    client: stripe.StripeClient = Depends(get_stripe_client),
):
    """Create a PaymentIntent and expose only its client secret."""
    client_secret = orchestrator.create_payment_intent(
        client,
        amount=amount or settings.DEFAULT_PAYMENT_AMOUNT,
        currency=currency or settings.DEFAULT_PAYMENT_CURRENCY,
        # The front end sends the literal "undefined" before a customer exists
        customer_id=customer_id if customer_id not in ("", "undefined", "null") else None,
    )
    return ClientSecretResponse(client_secret=client_secret)


@router.get("/customers")
def get_customer(
    email: Optional[str] = Query(None),
    client: stripe.StripeClient = Depends(get_stripe_client),
):
    customer = orchestrator.find_customer(client, email=email)
    return customer.to_dict() if customer else None


@router.post("/create-customer", response_model=CustomerCreatedResponse)
def create_customer(
    body: CreateCustomerRequest,
    client: stripe.StripeClient = Depends(get_stripe_client),
):
    customer_id = orchestrator.create_customer(
        client,
        name=body.name,
        email=body.email,
        phone=body.phone_number,
        address=body.address.model_dump(),
    )
    return CustomerCreatedResponse(stripe_customer_id=customer_id)


@router.post("/create-product", response_model=PriceCreatedResponse)
def create_product(
    body: CreateProductRequest,
    client: stripe.StripeClient = Depends(get_stripe_client),
):
    price_id = orchestrator.create_product(
        client,
        name=body.name,
        amount_major=body.amount,
        recurring=body.recurring,
    )
    return PriceCreatedResponse(id=price_id)


@router.post("/invoice/quarterly", response_model=InvoiceCreatedResponse)
def create_quarterly_invoice(
    body: QuarterlyInvoiceRequest,
    client: stripe.StripeClient = Depends(get_stripe_client),
):
    invoice_id = orchestrator.create_quarterly_invoice(
        client,
        price_id=body.price_id,
        currency=body.currency,
        customer_id=body.customer_id,
    )
    return InvoiceCreatedResponse(invoice_id=invoice_id)
