from typing import Optional

import stripe
from fastapi import Cookie, Request

from payment_element.core.config import Settings
from payment_element.core.errors import ConfigurationError, PaymentAPIError

SESSION_COOKIE = "customer"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_stripe_client(request: Request) -> stripe.StripeClient:
    """
    Return the Stripe client built at startup.

    Routes that talk to Stripe depend on this; without a secret key they fail
    with a configuration error while the rest of the app keeps serving.
    """
    client = request.app.state.stripe_client
    if client is None:
        raise ConfigurationError("Stripe secret key not configured. Set STRIPE_SECRET_KEY in environment.")
    return client


def get_optional_stripe_client(request: Request) -> Optional[stripe.StripeClient]:
    return request.app.state.stripe_client


def get_session_customer(customer: Optional[str] = Cookie(None, alias=SESSION_COOKIE)) -> str:
    """
    Customer id of the simulated session.

    The cookie only stands in for a login in this demo; it is not an
    authentication boundary.
    """
    if not customer:
        raise PaymentAPIError("No customer session. Create a customer first.")
    return customer
