"""
app/services/stripe_service.py

Purpose: Stripe integration

- Webhook signature verification
- Checkout sessions, billing portal sessions
- Customer, subscription and price lookups

All calls go through the synchronous Stripe SDK and return plain dicts.
"""

import json
from typing import Any, Dict, List, Optional

import stripe

from app.core.config import settings
from app.core.exceptions import ExternalServiceError, ResourceNotFoundError, WebhookSignatureError
from app.core.logging import get_logger

logger = get_logger(__name__)


def _configure():
    stripe.api_key = settings.STRIPE_SECRET_KEY
    stripe.api_version = settings.STRIPE_API_VERSION


def _as_dict(obj: Any) -> Any:
    if obj is None or isinstance(obj, dict):
        return obj
    return obj.to_dict()


def construct_event(payload: bytes, sig_header: Optional[str]) -> Dict[str, Any]:
    """
    Verifies a webhook payload against the signing secret.

    Returns:
        The event as a plain dict

    Raises:
        WebhookSignatureError: If the header or secret is missing or verification fails
    """
    if not sig_header:
        raise WebhookSignatureError("Missing stripe-signature header")
    if not settings.STRIPE_WEBHOOK_SECRET:
        raise WebhookSignatureError("Webhook secret is not configured")

    try:
        stripe.Webhook.construct_event(payload, sig_header, settings.STRIPE_WEBHOOK_SECRET)
    except stripe.SignatureVerificationError as e:
        raise WebhookSignatureError(str(e))
    except ValueError as e:
        raise WebhookSignatureError(f"Invalid payload: {e}")

    # The verified body is the event; keep it as plain JSON
    return json.loads(payload)


def invoice_price_id(invoice: Dict[str, Any]) -> Optional[str]:
    """
    Price id of the first invoice line.

    Older API versions expose lines[0].price.id, newer ones
    lines[0].pricing.price_details.price.
    """
    lines = ((invoice.get("lines") or {}).get("data")) or []
    if not lines:
        return None
    line = lines[0]

    price = line.get("price")
    if isinstance(price, dict) and price.get("id"):
        return price["id"]
    if isinstance(price, str):
        return price

    details = (line.get("pricing") or {}).get("price_details") or {}
    if details.get("price"):
        return details["price"]

    plan = line.get("plan") or {}
    return plan.get("id")


def retrieve_checkout_session(session_id: str) -> Dict[str, Any]:
    """Checkout session with its line items expanded."""
    _configure()
    try:
        session = stripe.checkout.Session.retrieve(session_id, expand=["line_items"])
    except stripe.StripeError as e:
        logger.error(f"Failed to retrieve checkout session {session_id}: {e}")
        raise ExternalServiceError("Failed to retrieve checkout session", details={"sessionId": session_id})
    return _as_dict(session)


def retrieve_customer(customer_id: str) -> Dict[str, Any]:
    _configure()
    try:
        return _as_dict(stripe.Customer.retrieve(customer_id))
    except stripe.StripeError as e:
        logger.error(f"Failed to retrieve customer {customer_id}: {e}")
        raise ExternalServiceError("Failed to retrieve Stripe customer")


def create_customer(email: str, name: Optional[str], user_id: str) -> Dict[str, Any]:
    _configure()
    try:
        customer = stripe.Customer.create(
            email=email,
            name=name or None,
            metadata={"userId": user_id},
        )
    except stripe.StripeError as e:
        logger.error(f"Failed to create Stripe customer for {email}: {e}")
        raise ExternalServiceError("Failed to create Stripe customer")
    logger.info(f"Created Stripe customer {customer['id']}")
    return _as_dict(customer)


def create_checkout_session(
    customer_id: str,
    price_id: str,
    success_url: str,
    cancel_url: str,
    user_id: str,
) -> Dict[str, Any]:
    """
    Creates a subscription checkout session that references the user,
    so the completion webhook can find them.

    Args:
        customer_id: Stripe customer to bill
        price_id: Recurring price for the plan
        success_url: Redirect after payment
        cancel_url: Redirect when the user backs out
        user_id: Stored as client_reference_id and in metadata

    Returns:
        The session as a dict; the caller redirects to its "url"

    Raises:
        ExternalServiceError: If Stripe rejects the request
    """
    _configure()
    try:
        session = stripe.checkout.Session.create(
            customer=customer_id,
            mode="subscription",
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=success_url,
            cancel_url=cancel_url,
            client_reference_id=user_id,
            metadata={"userId": user_id},
        )
    except stripe.StripeError as e:
        logger.error(f"Failed to create checkout session: {e}")
        raise ExternalServiceError("Failed to create checkout session")
    return _as_dict(session)


def create_portal_session(customer_id: str, return_url: str) -> Dict[str, Any]:
    _configure()
    try:
        session = stripe.billing_portal.Session.create(customer=customer_id, return_url=return_url)
    except stripe.StripeError as e:
        logger.error(f"Failed to create billing portal session for {customer_id}: {e}")
        raise ExternalServiceError("Failed to create billing portal session")
    return _as_dict(session)


def list_active_subscriptions(customer_id: str, limit: int = 1) -> List[Dict[str, Any]]:
    _configure()
    try:
        subscriptions = stripe.Subscription.list(customer=customer_id, status="active", limit=limit)
    except stripe.StripeError as e:
        logger.error(f"Failed to list subscriptions for {customer_id}: {e}")
        raise ExternalServiceError("Failed to list subscriptions")
    return [_as_dict(s) for s in subscriptions.data]


def retrieve_subscription(subscription_id: str) -> Dict[str, Any]:
    """
    Fetches a subscription so its owner can be checked before changes.

    Raises:
        ResourceNotFoundError: If Stripe has no such subscription
    """
    _configure()
    try:
        subscription = stripe.Subscription.retrieve(subscription_id)
    except stripe.InvalidRequestError as e:
        logger.info(f"Subscription {subscription_id} not found: {e}")
        raise ResourceNotFoundError("Subscription not found")
    except stripe.StripeError as e:
        logger.error(f"Failed to retrieve subscription {subscription_id}: {e}")
        raise ExternalServiceError("Failed to retrieve subscription information", status_code=500)
    return _as_dict(subscription)


def cancel_subscription(subscription_id: str) -> Dict[str, Any]:
    _configure()
    try:
        subscription = stripe.Subscription.cancel(subscription_id)
    except stripe.StripeError as e:
        logger.error(f"Failed to cancel subscription {subscription_id}: {e}")
        raise ExternalServiceError("Failed to cancel subscription", details={"subscriptionId": subscription_id})
    logger.info(f"Canceled subscription {subscription_id}")
    return _as_dict(subscription)


def list_active_prices() -> List[Dict[str, Any]]:
    """Active recurring prices with their products expanded."""
    _configure()
    try:
        prices = stripe.Price.list(active=True, type="recurring", limit=100, expand=["data.product"])
    except stripe.StripeError as e:
        logger.error(f"Failed to list prices: {e}")
        raise ExternalServiceError("Failed to fetch prices")
    return [_as_dict(p) for p in prices.data]
