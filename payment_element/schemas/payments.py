from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class CamelModel(BaseModel):
    class Config:
        # Accept both the camelCase wire names and the Python field names
        populate_by_name = True


class AddressIn(CamelModel):
    street: str
    zip: str
    state: Optional[str] = None
    country: Optional[str] = None  # ISO 3166-1 alpha-2, defaults to US upstream


class CreateCustomerRequest(CamelModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    address: AddressIn


class CreateProductRequest(CamelModel):
    name: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)  # major units, e.g. 19.99
    recurring: bool = False


class QuarterlyInvoiceRequest(CamelModel):
    price_id: str = Field(..., alias="priceId")
    currency: str = Field(..., pattern=r"^[A-Za-z]{3}$")
    customer_id: str = Field(..., alias="customerId")


class SubscriptionCustomerRequest(CamelModel):
    email: str = Field(..., min_length=3)


class CreateSubscriptionRequest(CamelModel):
    customer_id: str = Field(..., alias="customerId")
    price_id: str = Field(..., alias="priceId")


class CancelSubscriptionRequest(CamelModel):
    subscription_id: str = Field(..., alias="subscriptionId")


class UpdateSubscriptionRequest(CamelModel):
    subscription_id: str = Field(..., alias="subscriptionId")
    new_price_lookup_key: str = Field(..., alias="newPriceLookupKey")


class ConfigResponse(CamelModel):
    publishable_key: Optional[str] = Field(None, alias="publishableKey")


class ClientSecretResponse(CamelModel):
    client_secret: str = Field(..., alias="clientSecret")


class CustomerCreatedResponse(CamelModel):
    stripe_customer_id: str = Field(..., alias="stripeCustomerId")


class PriceCreatedResponse(CamelModel):
    id: str


class InvoiceCreatedResponse(CamelModel):
    invoice_id: str = Field(..., alias="invoiceID")


class SubscriptionCreatedResponse(CamelModel):
    subscription_id: str = Field(..., alias="subscriptionId")
    client_secret: str = Field(..., alias="clientSecret")


class CustomerResponse(BaseModel):
    customer: Dict[str, Any]


class SubscriptionResponse(BaseModel):
    subscription: Dict[str, Any]


class SubscriptionListResponse(BaseModel):
    subscriptions: List[Dict[str, Any]]


class InvoicePreviewResponse(BaseModel):
    invoice: Dict[str, Any]


class ErrorDetail(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: ErrorDetail
