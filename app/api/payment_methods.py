"""
app/api/payment_methods.py

Purpose: Dashboard payment method endpoints

- GET (and POST, as a refresh) return the user's payment methods
- POST /add stores a card submitted from the billing form
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from app.api.deps import get_current_user
from app.schemas.billing import PaymentMethodCreate
from app.services import payment_method_service

router = APIRouter()


@router.get("/payment-methods")
async def list_payment_methods(user: Dict[str, Any] = Depends(get_current_user)):
    return await payment_method_service.list_payment_methods(user)


@router.post("/payment-methods")
async def refresh_payment_methods(user: Dict[str, Any] = Depends(get_current_user)):
    return await payment_method_service.list_payment_methods(user)


@router.post("/payment-methods/add")
async def add_payment_method(body: PaymentMethodCreate, user: Dict[str, Any] = Depends(get_current_user)):
    payment_method = await payment_method_service.add_payment_method(
        user,
        card_number=body.cardNumber,
        cardholder_name=body.cardholderName,
        expiry_month=body.expiryMonth,
        expiry_year=body.expiryYear,
        cvc=body.cvc,
    )
    return {
        "success": True,
        "message": "Payment method added successfully",
        "paymentMethod": payment_method,
    }
