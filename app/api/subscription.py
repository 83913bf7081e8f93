"""
app/api/subscription.py

Purpose: Dashboard subscription endpoints

- Current plan, usage and billing dates
- Stripe prices, checkout, billing portal and cancellation
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from app.api.deps import get_current_user
from app.schemas.billing import CancelRequest, CheckoutRequest, PortalRequest
from app.services import subscription_service

router = APIRouter()


@router.get("/subscription")
async def get_subscription(user: Dict[str, Any] = Depends(get_current_user)):
    return await subscription_service.get_subscription_view(user)


@router.get("/subscription/prices")
async def list_prices(user: Dict[str, Any] = Depends(get_current_user)):
    return {"success": True, "prices": subscription_service.list_prices()}


@router.post("/subscription/checkout")
async def create_checkout(body: CheckoutRequest, user: Dict[str, Any] = Depends(get_current_user)):
    url = await subscription_service.create_checkout(user, body.priceId, body.successUrl, body.cancelUrl)
    return {"success": True, "url": url}


@router.post("/subscription/portal")
async def create_portal(body: PortalRequest, user: Dict[str, Any] = Depends(get_current_user)):
    url = subscription_service.create_portal(user, body.customerId, body.returnUrl)
    return {"url": url}


@router.post("/subscription/cancel")
async def cancel_subscription(body: CancelRequest, user: Dict[str, Any] = Depends(get_current_user)):
    subscription = await subscription_service.cancel_subscription(user, body.subscriptionId)
    return {
        "success": True,
        "message": "Subscription canceled successfully",
        "subscription": subscription,
    }
