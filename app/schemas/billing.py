"""
app/schemas/billing.py

Purpose: Subscription and payment method request bodies
"""

from typing import Optional, Union

from pydantic import BaseModel


class CheckoutRequest(BaseModel):
    priceId: Optional[str] = None
    successUrl: Optional[str] = None
    cancelUrl: Optional[str] = None


class PortalRequest(BaseModel):
    customerId: Optional[str] = None
    returnUrl: Optional[str] = None


class CancelRequest(BaseModel):
    """Either a subscription id or a Stripe customer id (cus_...)."""
    subscriptionId: Optional[str] = None


class PaymentMethodCreate(BaseModel):
    cardNumber: Optional[str] = None
    cardholderName: Optional[str] = None
    expiryMonth: Optional[Union[int, str]] = None
    expiryYear: Optional[Union[int, str]] = None
    cvc: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "cardNumber": "4242 4242 4242 4242",
                "cardholderName": "Jane Doe",
                "expiryMonth": "08",
                "expiryYear": "29",
                "cvc": "123",
            }
        }
    }
