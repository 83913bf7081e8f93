"""
app/models/invoice.py

Purpose: Invoice and transaction documents

- Transaction records pushed into the legacy client document
- Invoice documents derived from transactions and purchases,
  keyed by stripeInvoiceId
"""

from datetime import datetime
from typing import Any, Dict, Optional

from bson import ObjectId

from utils.time_utils import from_unix_timestamp, parse_date_or_now

INVOICE_STATUSES = ("draft", "open", "paid", "uncollectible", "void")

SOURCE_WEBHOOK = "stripe_webhook_transaction"
SOURCE_TRANSACTION = "client_transaction"
SOURCE_PURCHASE = "client_purchase"


def invoice_number(external_id: str) -> str:
    return f"INV-{external_id[:8]}"


def _invoice_status(value: Any) -> str:
    # Legacy purchases carry Stripe payment_status ("paid", "unpaid", ...)
    if value in INVOICE_STATUSES:
        return value
    if value == "unpaid":
        return "open"
    if value == "no_payment_required":
        return "paid"
    return "paid"


def transaction_from_stripe_invoice(stripe_invoice: Dict[str, Any], plan_name: Optional[str]) -> Dict[str, Any]:
    """
    Builds the client-document transaction for a paid Stripe invoice.

    The record depends only on the invoice, so redelivered events produce
    an identical record.
    """
    return {
        "id": stripe_invoice["id"],
        "date": from_unix_timestamp(stripe_invoice.get("created")) or datetime.utcnow(),
        "amount": (stripe_invoice.get("amount_paid") or 0) / 100,
        "currency": stripe_invoice.get("currency") or "usd",
        "status": "paid",
        "description": f"Payment for {plan_name or 'subscription'}",
        "receiptUrl": stripe_invoice.get("hosted_invoice_url"),
        "receiptPdf": stripe_invoice.get("invoice_pdf"),
    }


def invoice_from_transaction(
    transaction: Dict[str, Any],
    user_id: ObjectId,
    client_id: Optional[str],
    client_name: Optional[str],
    source: str = SOURCE_TRANSACTION,
) -> Dict[str, Any]:
    """
    Builds an invoice document from a client transaction record.
    Unreadable dates become the current time.
    """
    amount = transaction.get("amount") or 0
    return {
        "userId": user_id,
        "stripeInvoiceId": transaction["id"],
        "number": transaction.get("reference") or invoice_number(transaction["id"]),
        "description": transaction.get("description") or f"Payment - {client_name or 'Client'}",
        "amount": amount,
        "total": amount,
        "currency": transaction.get("currency") or "usd",
        "status": _invoice_status(transaction.get("status")),
        "invoiceDate": parse_date_or_now(transaction.get("date")),
        "invoiceUrl": transaction.get("receiptUrl") or "",
        "invoicePdf": transaction.get("receiptPdf") or "",
        "metadata": {
            "clientId": client_id or "",
            "clientName": client_name or "Unknown Client",
            "source": source,
        },
    }


def invoice_from_purchase(
    purchase: Dict[str, Any],
    user_id: ObjectId,
    client_id: Optional[str],
    client_name: Optional[str],
) -> Dict[str, Any]:
    """
    Builds an invoice document from a legacy checkout purchase record.
    """
    amount_total = purchase.get("amount_total")
    amount = amount_total / 100 if amount_total else 0
    return {
        "userId": user_id,
        "stripeInvoiceId": purchase["sessionId"],
        "number": invoice_number(purchase["sessionId"]),
        "description": f"Payment - {client_name or 'Client'}",
        "amount": amount,
        "total": amount,
        "currency": purchase.get("currency") or "usd",
        "status": _invoice_status(purchase.get("payment_status")),
        "invoiceDate": parse_date_or_now(purchase.get("created")),
        "invoiceUrl": "",
        "invoicePdf": "",
        "metadata": {
            "clientId": client_id or "",
            "clientName": client_name or "Unknown Client",
            "source": SOURCE_PURCHASE,
        },
    }
