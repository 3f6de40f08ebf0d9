"""
Error types surfaced to HTTP clients as ``{"error": {"message": ...}}``.
"""
from typing import Optional

import stripe


class PaymentAPIError(Exception):
    """A request could not be completed; reported to the caller with a message."""

    status_code = 400

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ConfigurationError(PaymentAPIError):
    """Local configuration required by the request is missing."""

    status_code = 500


def error_body(message: str) -> dict:
    return {"error": {"message": message}}


def stripe_error_message(exc: stripe.StripeError) -> str:
    """Return the upstream human-readable message for a Stripe error."""
    return exc.user_message or str(exc) or exc.__class__.__name__
