"""
app/services/billing_service.py

Purpose: Stripe webhook event processing

- checkout.session.completed: grant access, link the Stripe customer
- customer.subscription.deleted: revoke access
- invoice.paid / invoice.payment_succeeded: grant access, record the
  transaction on the client document and upsert the invoice
- Other events are acknowledged without changes
"""

from typing import Any, Callable, Dict, Optional

from app.core.logging import get_logger, LogContext
from app.models.invoice import (
    SOURCE_WEBHOOK,
    invoice_from_transaction,
    transaction_from_stripe_invoice,
)
from app.services import stripe_service
from app.services.client_records import add_transaction, find_client_for_user
from app.services.invoice_service import upsert_invoice
from app.services.subscription_service import plan_by_price_id
from app.services.user_service import (
    create_user,
    get_user_by_customer_id,
    get_user_by_email,
    get_user_by_id,
    update_user,
)

logger = get_logger(__name__)

ACKNOWLEDGED_EVENTS = (
    "checkout.session.expired",
    "customer.subscription.updated",
    "invoice.payment_failed",
)


async def handle_checkout_completed(session_object: Dict[str, Any]) -> None:
    """
    First payment succeeded. Resolves the plan from the session's first
    line item, finds (or creates) the user and grants access.

    Args:
        session_object: Checkout session from the event payload

    Raises:
        ValueError: If the session has no price or no resolvable user
    """
    # Line items are only present on the retrieved session
    session = stripe_service.retrieve_checkout_session(session_object["id"])
    line_items = ((session.get("line_items") or {}).get("data")) or []
    price = (line_items[0].get("price") or {}) if line_items else {}
    price_id = price.get("id") if isinstance(price, dict) else price
    if not price_id:
        raise ValueError("Stripe line items or price not found in session")

    plan = plan_by_price_id(price_id)
    if not plan:
        logger.warning(f"Checkout for unknown price {price_id}, ignoring")
        return

    # Find user: client reference first, then the customer's email
    customer_id = session.get("customer")
    reference_id = session_object.get("client_reference_id") or session.get("client_reference_id")

    user = None
    if reference_id:
        user = await get_user_by_id(reference_id)
    if user is None:
        customer = stripe_service.retrieve_customer(customer_id) if customer_id else {}
        email = customer.get("email")
        if not email:
            raise ValueError("No user found for checkout session")
        user = await get_user_by_email(email)
        if user is None:
            user = await create_user(email, customer.get("name"))

    # Grant access and store the plan snapshot
    with LogContext(user_id=str(user["_id"]), customer_id=customer_id):
        await update_user(user["_id"], {
            "priceId": price_id,
            "customerId": customer_id,
            "hasAccess": True,
            "subscription": {
                **(user.get("subscription") or {}),
                "planName": plan["name"],
                "planPrice": plan["price"],
                "status": "active",
                "billingCycle": "monthly",
            },
            "usage": {
                **(user.get("usage") or {}),
                "minutesLimit": plan["minutes"],
            },
        })
        logger.info(f"Access granted for {plan['name']}")


async def handle_subscription_deleted(subscription: Dict[str, Any]) -> None:
    """Subscription ended for good. Revokes access."""
    customer_id = subscription.get("customer")
    user = await get_user_by_customer_id(customer_id)
    if not user:
        logger.warning(f"No user found with customerId {customer_id}")
        return

    with LogContext(user_id=str(user["_id"]), customer_id=customer_id):
        fields: Dict[str, Any] = {"hasAccess": False}
        if isinstance(user.get("subscription"), dict):
            fields["subscription.status"] = "canceled"
        else:
            fields["subscription"] = {"status": "canceled"}
        await update_user(user["_id"], fields)
        logger.info("Access revoked, subscription canceled")


async def handle_invoice_paid(invoice: Dict[str, Any]) -> None:
    """
    Recurring payment succeeded.

    Grants access, then records the transaction and upserts the invoice.
    The two writes are independent; a failure in one is logged and does
    not prevent the other.
    """
    customer_id = invoice.get("customer")
    user = await get_user_by_customer_id(customer_id)
    if not user:
        logger.warning(f"No user found with customerId {customer_id}, ignoring invoice {invoice.get('id')}")
        return

    with LogContext(user_id=str(user["_id"]), customer_id=customer_id):
        # Only the user's current plan counts
        price_id = stripe_service.invoice_price_id(invoice)
        if not price_id:
            raise ValueError("Invoice line items or price not found")
        if user.get("priceId") != price_id:
            logger.info(
                f"Invoice price {price_id} does not match user's price {user.get('priceId')}, skipping"
            )
            return

        # Grant access
        await update_user(user["_id"], {"hasAccess": True})

        plan = plan_by_price_id(price_id)
        transaction = transaction_from_stripe_invoice(invoice, plan["name"] if plan else None)

        # Record transaction on the client document
        try:
            await add_transaction(user, transaction)
        except Exception as e:
            logger.error(f"Error storing transaction {transaction['id']}: {e}", exc_info=True)

        # Upsert invoice
        try:
            client = await find_client_for_user(user["_id"])
            client_id = str(client["_id"]) if client else ""
            client_name = (client or {}).get("name") or user.get("name")
            stored = await upsert_invoice(
                invoice_from_transaction(transaction, user["_id"], client_id, client_name, SOURCE_WEBHOOK)
            )
            logger.info(f"Invoice {stored['stripeInvoiceId']} saved ({stored['amount']} {stored['currency']})")
        except Exception as e:
            logger.error(f"Error saving invoice {transaction['id']}: {e}", exc_info=True)


EVENT_HANDLERS: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    "checkout.session.completed": handle_checkout_completed,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.paid": handle_invoice_paid,
    "invoice.payment_succeeded": handle_invoice_paid,
}


async def process_event(event: Dict[str, Any]) -> Optional[str]:
    """
    Dispatches a verified Stripe event to its handler.

    Handler exceptions are logged and swallowed so Stripe sees the
    delivery acknowledged.

    Returns:
        The event type that was handled, or None if it was ignored
    """
    event_type = event.get("type")
    event_id = event.get("id")
    data_object = ((event.get("data") or {}).get("object")) or {}

    with LogContext(event_id=event_id, event_type=event_type):
        handler = EVENT_HANDLERS.get(event_type)
        if handler is None:
            if event_type in ACKNOWLEDGED_EVENTS:
                logger.info(f"Acknowledged {event_type}, no action needed")
            else:
                logger.debug(f"Unhandled event type {event_type}")
            return None

        logger.info(f"Processing {event_type}")
        try:
            await handler(data_object)
        except Exception as e:
            logger.error(f"Error processing event {event_type}: {e}", exc_info=True)
        return event_type
