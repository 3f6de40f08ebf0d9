from payment_element.schemas.payments import (
    CreateCustomerRequest,
    CreateProductRequest,
    QuarterlyInvoiceRequest,
    ErrorResponse,
)
from payment_element.schemas.webhook import EventType, WebhookEvent

__all__ = [
    "CreateCustomerRequest", "CreateProductRequest", "QuarterlyInvoiceRequest",
    "ErrorResponse",
    "EventType", "WebhookEvent",
]
