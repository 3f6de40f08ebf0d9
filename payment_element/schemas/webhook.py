from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


class EventType(str, Enum):
    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_INTENT_PAYMENT_FAILED = "payment_intent.payment_failed"
    PAYMENT_INTENT_PROCESSING = "payment_intent.processing"
    INVOICE_PAID = "invoice.paid"
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"
    INVOICE_FINALIZED = "invoice.finalized"
    CUSTOMER_SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    UNKNOWN = "unknown"

    @classmethod
    def from_tag(cls, tag: Optional[str]) -> "EventType":
        if not isinstance(tag, str):
            return cls.UNKNOWN
        if tag in _LEGACY_TAGS:
            return _LEGACY_TAGS[tag]
        try:
            member = cls(tag)
        except ValueError:
            return cls.UNKNOWN
        # "unknown" is the fallthrough, never a tag Stripe sends
        return cls.UNKNOWN if member is cls.UNKNOWN else member


# Tags older front ends and fixtures still send
_LEGACY_TAGS = {
    "invoice_paid": EventType.INVOICE_PAID,
}


class WebhookEvent(BaseModel):
    id: Optional[str] = None
    type: EventType
    type_tag: Optional[str] = None  # raw tag as received
    data: Dict[str, Any] = {}
    request_id: Optional[str] = None  # set when an API request caused the event

    @property
    def object(self) -> Dict[str, Any]:
        return self.data.get("object") or {}
