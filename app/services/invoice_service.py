"""
app/services/invoice_service.py

Purpose: Invoice persistence and read-repair

- Idempotent upsert keyed by stripeInvoiceId
- Listing a user's invoices across legacy userId forms
- Rebuilding invoices from client transactions and purchases
"""

from datetime import datetime
from typing import Any, Dict, List

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from app.db.mongo import get_invoices_collection
from app.core.logging import get_logger, LogContext
from app.models.invoice import (
    SOURCE_TRANSACTION,
    invoice_from_purchase,
    invoice_from_transaction,
)
from app.services.client_records import (
    find_clients_for_user,
    find_clients_with_history,
    select_clients_for_user,
)
from utils.id_utils import owner_id_matches, owner_id_query

logger = get_logger(__name__)

REFRESH_MESSAGE = "Invoices refreshed and saved to MongoDB successfully"

INSERT_ONLY_FIELDS = ("_id", "stripeInvoiceId", "userId", "createdAt")


async def upsert_invoice(invoice: Dict[str, Any]) -> Dict[str, Any]:
    """
    Inserts or updates an invoice keyed by stripeInvoiceId.

    A single upsert against the unique index, so concurrent or repeated
    deliveries of the same invoice converge on one document. If two
    upserts race and one loses on the unique index, it is retried as a
    plain update.

    The owner (userId) and metadata.source are written on insert only;
    later upserts refresh amounts, status and client details.

    Args:
        invoice: Invoice document as built by app.models.invoice

    Returns:
        The stored invoice document
    """
    invoices = get_invoices_collection()
    stripe_invoice_id = invoice["stripeInvoiceId"]
    now = datetime.utcnow()

    fields = {k: v for k, v in invoice.items() if k not in INSERT_ONLY_FIELDS}
    metadata = fields.pop("metadata", None) or {}
    for key, value in metadata.items():
        if key != "source":
            fields[f"metadata.{key}"] = value
    fields["updatedAt"] = now

    on_insert = {"createdAt": now, "userId": invoice.get("userId")}
    if "source" in metadata:
        on_insert["metadata.source"] = metadata["source"]

    update = {"$set": fields, "$setOnInsert": on_insert}

    try:
        await invoices.update_one({"stripeInvoiceId": stripe_invoice_id}, update, upsert=True)
    except DuplicateKeyError:
        # Lost the insert race; the winner's document now exists
        logger.info(f"Concurrent insert for invoice {stripe_invoice_id}, retrying as update")
        await invoices.update_one({"stripeInvoiceId": stripe_invoice_id}, {"$set": fields})

    return await invoices.find_one({"stripeInvoiceId": stripe_invoice_id})


async def list_invoices(user_id: ObjectId) -> List[Dict[str, Any]]:
    """The user's invoices, newest first."""
    invoices = get_invoices_collection()
    cursor = invoices.find(owner_id_query("userId", user_id)).sort("invoiceDate", -1)
    return await cursor.to_list(length=None)


async def count_invoices(user_id: ObjectId) -> int:
    invoices = get_invoices_collection()
    return await invoices.count_documents(owner_id_query("userId", user_id))


def serialize_invoice(invoice: Dict[str, Any]) -> Dict[str, Any]:
    """API shape of an invoice document."""
    metadata = invoice.get("metadata") or {}
    return {
        "id": str(invoice["_id"]) if invoice.get("_id") is not None else None,
        "userId": str(invoice.get("userId")) if invoice.get("userId") is not None else None,
        "stripeInvoiceId": invoice.get("stripeInvoiceId"),
        "number": invoice.get("number"),
        "description": invoice.get("description"),
        "amount": invoice.get("amount", 0),
        "total": invoice.get("total", invoice.get("amount", 0)),
        "currency": invoice.get("currency") or "usd",
        "status": invoice.get("status"),
        "invoiceDate": invoice.get("invoiceDate"),
        "invoiceUrl": invoice.get("invoiceUrl") or "",
        "invoicePdf": invoice.get("invoicePdf") or "",
        "metadata": {
            "clientId": metadata.get("clientId"),
            "clientName": metadata.get("clientName"),
            "source": metadata.get("source"),
        },
    }


def _invoices_from_client(client: Dict[str, Any], user_id: ObjectId, include_purchases: bool) -> List[Dict[str, Any]]:
    client_id = str(client["_id"])
    client_name = client.get("name")
    built = []

    if include_purchases:
        for purchase in client.get("purchases") or []:
            if not isinstance(purchase, dict) or not purchase.get("sessionId"):
                continue
            built.append(invoice_from_purchase(purchase, user_id, client_id, client_name))

    for transaction in client.get("transactions") or []:
        if not isinstance(transaction, dict) or not transaction.get("id") or not transaction.get("date"):
            logger.debug("Skipping transaction with missing id or date")
            continue
        built.append(invoice_from_transaction(transaction, user_id, client_id, client_name, SOURCE_TRANSACTION))

    return built


async def _save_all(candidates: List[Dict[str, Any]], user_id: ObjectId) -> Dict[str, Any]:
    saved = []
    for invoice in candidates:
        try:
            stored = await upsert_invoice(invoice)
        except Exception as e:
            logger.error(f"Error saving invoice {invoice.get('stripeInvoiceId')}: {e}", exc_info=True)
            continue
        if owner_id_matches(stored.get("userId"), user_id):
            saved.append(stored)
        else:
            logger.warning(f"Invoice {stored.get('stripeInvoiceId')} belongs to another user, not listed")

    saved.sort(key=lambda inv: inv.get("invoiceDate") or datetime.min, reverse=True)
    verified = await count_invoices(user_id)
    logger.info(f"Saved {len(saved)} invoice(s), {verified} now stored for user")

    return {
        "message": REFRESH_MESSAGE,
        "invoices": [serialize_invoice(inv) for inv in saved],
        "savedCount": len(saved),
        "verifiedCount": verified,
    }


async def get_invoices(user: Dict[str, Any]) -> Dict[str, Any]:
    """
    Lists the user's invoices. When none are stored, rebuilds them from
    the transactions on the user's client documents and saves them.
    """
    user_id = user["_id"]
    with LogContext(user_id=str(user_id)):
        stored = await list_invoices(user_id)
        if stored:
            return {"invoices": [serialize_invoice(inv) for inv in stored]}

        logger.info("No stored invoices, rebuilding from client transactions")
        candidates = []
        for client in await find_clients_for_user(user_id):
            candidates.extend(_invoices_from_client(client, user_id, include_purchases=False))

        return await _save_all(candidates, user_id)


async def refresh_invoices(user: Dict[str, Any]) -> Dict[str, Any]:
    """
    Full rebuild from every client document that belongs to the user,
    including legacy checkout purchases.
    """
    user_id = user["_id"]
    with LogContext(user_id=str(user_id)):
        clients = select_clients_for_user(await find_clients_with_history(), user)
        logger.info(f"Refreshing invoices from {len(clients)} client record(s)")

        candidates = []
        for client in clients:
            candidates.extend(_invoices_from_client(client, user_id, include_purchases=True))

        return await _save_all(candidates, user_id)
