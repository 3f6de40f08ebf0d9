"""
Construction of the shared Stripe client handle.

One ``stripe.StripeClient`` is built at startup and handed to every request
through ``api.deps.get_stripe_client``. It is never mutated afterwards.
"""
import logging
from typing import Optional

import stripe

from payment_element.core.config import Settings

logger = logging.getLogger(__name__)

APP_INFO_NAME = "payment-element-demo"


def build_stripe_client(settings: Settings) -> Optional[stripe.StripeClient]:
    """Build the client, or return None when no secret key is configured."""
    if not settings.STRIPE_SECRET_KEY:
        logger.warning("[STRIPE] STRIPE_SECRET_KEY not configured; Stripe-backed routes will fail")
        return None

    kwargs = {"max_network_retries": settings.STRIPE_MAX_NETWORK_RETRIES}
    if settings.STRIPE_API_VERSION:
        kwargs["stripe_version"] = settings.STRIPE_API_VERSION

    # app_info is process-global in stripe-python; it only tags the User-Agent
    stripe.set_app_info(APP_INFO_NAME, version="1.0.0")
    return stripe.StripeClient(settings.STRIPE_SECRET_KEY, **kwargs)
