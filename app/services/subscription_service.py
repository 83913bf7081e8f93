"""
app/services/subscription_service.py

Purpose: Subscription plans and Stripe subscription management

- Plan catalog lookups by price id, purchase amount and plan name
- Subscription view assembled from the user, client records and call usage
- Checkout, billing portal, cancellation and price listing
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from app.core.config import settings
from app.core.exceptions import BadRequestError, ExternalServiceError, ForbiddenError, ResourceNotFoundError
from app.core.logging import get_logger, LogContext
from app.db.mongo import get_calls_collection
from app.models.user import stripe_customer_id
from app.services import stripe_service
from app.services.client_records import find_client_by_email, mark_subscription_canceled
from app.services.user_service import update_user
from utils.time_utils import add_one_month, billable_minutes, from_unix_timestamp, parse_date

logger = get_logger(__name__)


# ==============================================
# PLAN CATALOG
# ==============================================

def plan_by_price_id(price_id: Optional[str]) -> Optional[Dict[str, Any]]:
    if not price_id:
        return None
    return next((p for p in settings.plans if p["priceId"] == price_id), None)


def plan_by_amount(amount_total: Any) -> Optional[Dict[str, Any]]:
    """Plan whose price in cents equals a legacy purchase's amount_total."""
    try:
        amount = int(float(amount_total))
    except (TypeError, ValueError):
        return None
    return next((p for p in settings.plans if p["amountTotal"] == amount), None)


def plan_by_name(plan_name: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Plan matching keywords in a stored plan name
    ("Enterprise Plus" is checked before "Enterprise").
    """
    if not plan_name:
        return None
    lowered = plan_name.lower()
    if "professional" in lowered:
        key = "Professional Plan"
    elif "business" in lowered:
        key = "Business Plan"
    elif "enterprise" in lowered:
        key = "Enterprise Plus Plan" if "plus" in lowered else "Enterprise Plan"
    elif "starter" in lowered:
        key = "Starter Plan"
    else:
        return None
    return next(p for p in settings.plans if p["name"] == key)


# ==============================================
# SUBSCRIPTION VIEW
# ==============================================

async def calculate_minutes_used(user: Dict[str, Any]) -> int:
    """
    Billable minutes from stored calls, falling back to usage.minutesUsed.
    """
    usage = user.get("usage") or {}
    try:
        calls = await get_calls_collection().find({"userId": user["_id"]}).to_list(length=None)
        total_seconds = sum((c.get("duration") or 0) for c in calls)
        minutes = billable_minutes(total_seconds, len(calls))
    except Exception as e:
        logger.error(f"Error calculating minutes used from calls: {e}", exc_info=True)
        minutes = 0

    if minutes == 0 and usage.get("minutesUsed"):
        minutes = usage["minutesUsed"]
    return minutes


def _latest_purchase(purchases: List[Any]) -> Optional[Dict[str, Any]]:
    """Newest purchase record; legacy entries that are not objects are ignored."""
    records = [p for p in purchases if isinstance(p, dict)]
    if not records:
        return None
    return max(records, key=lambda p: parse_date(p.get("created")) or datetime.min)


async def get_subscription_view(user: Dict[str, Any]) -> Dict[str, Any]:
    """
    Builds the dashboard subscription summary.

    Starts from the user's stored snapshot. A legacy client record with
    purchases overrides the plan (by amount) and the billing dates.
    """
    with LogContext(user_id=str(user["_id"])):
        subscription = user.get("subscription") or {}
        usage = user.get("usage") or {}

        plan_name = subscription.get("planName") or ""
        plan_price = subscription.get("planPrice") or 0
        billing_cycle = subscription.get("billingCycle") or "monthly"
        status = (subscription.get("status") or "active") if plan_name else ""
        period_start = (subscription.get("currentPeriodStart") or datetime.utcnow()) if plan_name else None
        period_end = (subscription.get("currentPeriodEnd") or datetime.utcnow()) if plan_name else None
        minutes_included = 80 if plan_name else 0
        plan_from_purchase = False

        try:
            client = await find_client_by_email(user.get("email"))
        except Exception as e:
            logger.error(f"Error reading client record, using user data: {e}")
            client = None

        latest = _latest_purchase(client.get("purchases") or []) if client else None
        if latest:
            purchased_at = parse_date(latest.get("created"))
            if purchased_at:
                period_end = add_one_month(purchased_at)

            plan = plan_by_amount(latest.get("amount_total"))
            if plan:
                plan_name, plan_price, minutes_included = plan["name"], plan["price"], plan["minutes"]
                plan_from_purchase = True
            else:
                logger.info(f"No plan matches purchase amount {latest.get('amount_total')}")

            client_sub = client.get("subscription") or {}
            if client_sub:
                status = client_sub.get("status") or status
                period_start = from_unix_timestamp(client_sub.get("current_period_start")) or period_start
                period_end = from_unix_timestamp(client_sub.get("current_period_end")) or period_end

        if not plan_from_purchase and subscription.get("planName"):
            plan_name = subscription["planName"]
            plan = plan_by_name(plan_name)
            if plan:
                plan_price, minutes_included = plan["price"], plan["minutes"]

        if usage.get("minutesLimit") and usage["minutesLimit"] > 0:
            minutes_included = usage["minutesLimit"]

        minutes_used = await calculate_minutes_used(user)

        if plan_name == "Free Plan":
            plan_name = "Starter Plan"

        return {
            "id": user.get("customerId") or "sub_default",
            "planName": plan_name,
            "planPrice": plan_price,
            "billingCycle": billing_cycle,
            "status": status,
            "currentPeriodStart": period_start,
            "currentPeriodEnd": period_end,
            "minutesIncluded": minutes_included,
            "minutesUsed": minutes_used,
            "nextBillingDate": period_end,
        }


# ==============================================
# STRIPE OPERATIONS
# ==============================================

def list_prices() -> List[Dict[str, Any]]:
    """Active recurring prices formatted for the plan picker."""
    formatted = []
    for price in stripe_service.list_active_prices():
        product = price.get("product")
        product = product if isinstance(product, dict) else {"id": product}
        recurring = price.get("recurring") or {}
        formatted.append({
            "id": price.get("id"),
            "productId": product.get("id"),
            "name": product.get("name"),
            "description": product.get("description"),
            "unitAmount": price.get("unit_amount"),
            "currency": price.get("currency"),
            "type": price.get("type"),
            "interval": recurring.get("interval"),
            "intervalCount": recurring.get("interval_count"),
            "nickname": price.get("nickname"),
            "metadata": price.get("metadata") or {},
            "active": price.get("active"),
        })
    return formatted


async def create_checkout(user: Dict[str, Any], price_id: str, success_url: str, cancel_url: str) -> str:
    """
    Creates a subscription checkout session, creating the Stripe customer
    on first use.

    Returns:
        Checkout URL
    """
    if not price_id:
        raise BadRequestError("Price ID is required")
    if not success_url or not cancel_url:
        raise BadRequestError("Success and cancel URLs are required")

    user_id = str(user["_id"])
    customer_id = stripe_customer_id(user)
    if not customer_id:
        customer = stripe_service.create_customer(user["email"], user.get("name"), user_id)
        customer_id = customer["id"]
        await update_user(user["_id"], {"stripeCustomerId": customer_id})
        logger.info(f"Stored new Stripe customer {customer_id}", extra={"user_id": user_id})

    session = stripe_service.create_checkout_session(customer_id, price_id, success_url, cancel_url, user_id)
    return session["url"]


def create_portal(user: Dict[str, Any], customer_id: Optional[str], return_url: Optional[str]) -> str:
    """
    Billing portal URL for the user's Stripe customer.

    Raises:
        BadRequestError: If the user has no Stripe customer
        ForbiddenError: If a customer id other than the user's own is given
    """
    own_customer_id = stripe_customer_id(user)
    if customer_id and customer_id != own_customer_id:
        logger.warning(f"Portal requested for foreign customer {customer_id}", extra={"user_id": str(user["_id"])})
        raise ForbiddenError("Customer ID does not belong to your account")
    customer_id = own_customer_id
    if not customer_id:
        raise BadRequestError("No Stripe customer ID found")
    session = stripe_service.create_portal_session(customer_id, return_url or settings.APP_URL)
    return session["url"]


async def cancel_subscription(user: Dict[str, Any], subscription_id: Optional[str]) -> Dict[str, Any]:
    """
    Cancels a subscription in Stripe and revokes access.

    A customer id (cus_...) resolves to that customer's active subscription.
    Only the user's own customer and its subscriptions can be canceled.

    Raises:
        BadRequestError: If no id is given or the user has no Stripe customer
        ForbiddenError: If the customer or subscription is not the user's
        ResourceNotFoundError: If a customer id has no active subscription
    """
    with LogContext(user_id=str(user["_id"])):
        if not subscription_id:
            raise BadRequestError("Subscription ID is required")

        customer_id = stripe_customer_id(user)
        if not customer_id:
            raise BadRequestError("No Stripe customer ID found for this user")

        if subscription_id.startswith("cus_"):
            if subscription_id != customer_id:
                raise ForbiddenError("Customer ID does not belong to your account")
            try:
                active = stripe_service.list_active_subscriptions(customer_id, limit=1)
            except ExternalServiceError:
                raise ExternalServiceError("Failed to retrieve subscription information", status_code=500)
            if not active:
                raise ResourceNotFoundError("No active subscriptions found for this customer")
            subscription_id = active[0]["id"]
        else:
            # Subscription ids are checked against their Stripe customer
            subscription = stripe_service.retrieve_subscription(subscription_id)
            if subscription.get("customer") != customer_id:
                logger.warning(f"Cancel requested for foreign subscription {subscription_id}")
                raise ForbiddenError("Subscription does not belong to your account")

        canceled = stripe_service.cancel_subscription(subscription_id)

        fields: Dict[str, Any] = {"hasAccess": False}
        if isinstance(user.get("subscription"), dict):
            fields["subscription.status"] = "canceled"
        await update_user(user["_id"], fields)

        try:
            await mark_subscription_canceled(user)
        except Exception as e:
            logger.error(f"Error updating client record after cancel: {e}", exc_info=True)

        logger.info(f"Subscription {subscription_id} canceled")
        return {"id": canceled.get("id"), "status": canceled.get("status")}
