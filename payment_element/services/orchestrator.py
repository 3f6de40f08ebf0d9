"""
Builds Stripe creation requests from validated input and shapes the results.

Every function takes the shared ``stripe.StripeClient`` as its first argument.
Upstream failures surface as ``PaymentAPIError`` carrying Stripe's message;
nothing here retries.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from functools import wraps
from typing import Callable, Iterable, List, Optional, Tuple

import stripe

from payment_element.core.errors import PaymentAPIError, stripe_error_message
from payment_element.services.money import add_months, split_installments, to_minor_units

logger = logging.getLogger(__name__)

SUBSCRIPTION_LIFETIME_MONTHS = 3

# (description, days_until_due) for each quarterly installment
QUARTERLY_SCHEDULE = (
    ("Initial Payment", 1),
    ("Installment one", 30),
    ("Installment two", 60),
)


def translate_stripe_errors(func: Callable):
    """Re-raise ``stripe.StripeError`` from ``func`` as ``PaymentAPIError``."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except stripe.StripeError as e:
            message = stripe_error_message(e)
            logger.warning(f"[PAYMENTS] {func.__name__} failed upstream: {message}")
            raise PaymentAPIError(message) from e
    return wrapper


@translate_stripe_errors
def create_payment_intent(
    client: stripe.StripeClient,
    amount: int,
    currency: str,
    customer_id: Optional[str] = None,
) -> str:
    """Create a card PaymentIntent and return only its client secret."""
    params = {
        "amount": amount,
        "currency": currency.lower(),
        "payment_method_types": ["card"],
        # Saves the card on the customer for later off-session charges
        "setup_future_usage": "off_session",
    }
    if customer_id:
        params["customer"] = customer_id

    intent = client.payment_intents.create(params=params)
    logger.info(f"[PAYMENTS] Created payment intent {intent.id} ({amount} {currency.upper()})")
    return intent.client_secret


@translate_stripe_errors
def find_customer(client: stripe.StripeClient, email: Optional[str] = None):
    """Return the first of up to 100 customers, filtered by email when given."""
    params = {"limit": 100}
    if email:
        params["email"] = email
    customers = client.customers.list(params=params)
    return customers.data[0] if customers.data else None


@translate_stripe_errors
def create_customer(
    client: stripe.StripeClient,
    name: str,
    email: str,
    phone: Optional[str],
    address: dict,
) -> str:
    customer = client.customers.create(params={
        "description": f"Creating customer {name}",
        "name": name,
        "email": email,
        "phone": phone,
        "address": {
            "line1": address.get("street"),
            "state": address.get("state"),
            "country": address.get("country") or "US",
            "postal_code": address.get("zip"),
        },
    })
    logger.info(f"[PAYMENTS] Created customer {customer.id}")
    return customer.id


@translate_stripe_errors
def create_product(
    client: stripe.StripeClient,
    name: str,
    amount_major: Decimal,
    recurring: bool = False,
    currency: str = "usd",
    extra_currencies: Iterable[str] = ("eur",),
) -> str:
    """
    Create a product and its price, returning the price id.

    ``amount_major`` is in major units (``19.99``) and is scaled per currency,
    so the same major amount is offered in ``currency`` and each of
    ``extra_currencies``.
    """
    # Validate before creating anything remotely
    try:
        unit_amount = to_minor_units(amount_major, currency)
        currency_options = {
            code.lower(): {"unit_amount": to_minor_units(amount_major, code)}
            for code in extra_currencies
            if code.lower() != currency.lower()
        }
    except ValueError as e:
        raise PaymentAPIError(str(e))

    product = client.products.create(params={"name": name})

    params = {
        "product": product.id,
        "unit_amount": unit_amount,
        "currency": currency.lower(),
    }
    if currency_options:
        params["currency_options"] = currency_options
    if recurring:
        params["recurring"] = {"interval": "month"}

    price = client.prices.create(params=params)
    logger.info(f"[PAYMENTS] Created price {price.id} for product {product.id} ({unit_amount} {currency.upper()})")
    return price.id


def _unit_amount_for_currency(price, currency: str) -> int:
    currency = currency.lower()
    if price.currency == currency:
        return price.unit_amount
    options = getattr(price, "currency_options", None) or {}
    try:
        return options[currency]["unit_amount"]
    except KeyError:
        raise PaymentAPIError(f"Price {price.id} has no amount for currency {currency.upper()}")


@translate_stripe_errors
def create_quarterly_invoice(
    client: stripe.StripeClient,
    price_id: str,
    currency: str,
    customer_id: str,
) -> str:
    """
    Bill ``price_id`` to ``customer_id`` as three installments 30 days apart.

    Each installment is the price's unit amount divided by three and rounded
    up, so the schedule can total up to two minor units more than the price.
    """
    price = client.prices.retrieve(price_id, params={"expand": ["currency_options"]})
    amount = _unit_amount_for_currency(price, currency)
    installments = split_installments(amount, len(QUARTERLY_SCHEDULE))

    invoice = client.invoices.create(params={
        "collection_method": "send_invoice",
        "customer": customer_id,
        "pending_invoice_items_behavior": "exclude",
        "auto_advance": True,
        "amounts_due": [
            {"amount": installment, "description": description, "days_until_due": days}
            for installment, (description, days) in zip(installments, QUARTERLY_SCHEDULE)
        ],
    })

    client.invoice_items.create(params={
        "customer": customer_id,
        "price": price_id,
        "invoice": invoice.id,
        "currency": currency.lower(),
    })
    logger.info(f"[PAYMENTS] Created quarterly invoice {invoice.id} for {customer_id}: {installments}")
    return invoice.id


@translate_stripe_errors
def create_subscription_customer(client: stripe.StripeClient, email: str):
    customer = client.customers.create(params={"email": email})
    logger.info(f"[SUBSCRIPTIONS] Created customer {customer.id}")
    return customer


@translate_stripe_errors
def create_subscription(
    client: stripe.StripeClient,
    customer_id: str,
    price_id: str,
    now: Optional[datetime] = None,
) -> Tuple[str, str]:
    """
    Create an incomplete subscription that cancels itself after three months.

    Returns ``(subscription_id, client_secret)`` where the secret belongs to
    the payment intent of the first invoice.
    """
    now = now or datetime.now(timezone.utc)
    cancel_at = add_months(now, SUBSCRIPTION_LIFETIME_MONTHS)

    subscription = client.subscriptions.create(params={
        "customer": customer_id,
        "items": [{"price": price_id}],
        "payment_behavior": "default_incomplete",
        "expand": ["latest_invoice.payment_intent"],
        "cancel_at": int(cancel_at.timestamp()),
    })

    latest_invoice = subscription.latest_invoice
    payment_intent = getattr(latest_invoice, "payment_intent", None) if latest_invoice else None
    if not payment_intent:
        raise PaymentAPIError(f"Subscription {subscription.id} has no payment intent to confirm")

    logger.info(f"[SUBSCRIPTIONS] Created subscription {subscription.id} for {customer_id}, cancels at {cancel_at.isoformat()}")
    return subscription.id, payment_intent.client_secret


def _first_item_id(subscription) -> str:
    items = subscription["items"].data
    if not items:
        raise PaymentAPIError(f"Subscription {subscription.id} has no items")
    return items[0].id


@translate_stripe_errors
def preview_invoice(client: stripe.StripeClient, subscription_id: str, new_price_id: str):
    """Preview the next invoice if the subscription moved to ``new_price_id``."""
    subscription = client.subscriptions.retrieve(subscription_id)
    return client.invoices.create_preview(params={
        "customer": subscription.customer,
        "subscription": subscription_id,
        "subscription_details": {
            "items": [{"id": _first_item_id(subscription), "price": new_price_id}],
        },
    })


@translate_stripe_errors
def cancel_subscription(client: stripe.StripeClient, subscription_id: str):
    subscription = client.subscriptions.cancel(subscription_id)
    logger.info(f"[SUBSCRIPTIONS] Canceled subscription {subscription_id}")
    return subscription


@translate_stripe_errors
def update_subscription_price(client: stripe.StripeClient, subscription_id: str, new_price_id: str):
    subscription = client.subscriptions.retrieve(subscription_id)
    updated = client.subscriptions.update(subscription_id, params={
        "items": [{"id": _first_item_id(subscription), "price": new_price_id}],
    })
    logger.info(f"[SUBSCRIPTIONS] Moved subscription {subscription_id} to price {new_price_id}")
    return updated


@translate_stripe_errors
def list_subscriptions(client: stripe.StripeClient, customer_id: str) -> List:
    subscriptions = client.subscriptions.list(params={
        "customer": customer_id,
        "status": "all",
        "expand": ["data.default_payment_method"],
    })
    return list(subscriptions.data)
