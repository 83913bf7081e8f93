"""
app/services/payment_method_service.py

Purpose: Payment method listing and storage

- Collects payment methods from client records, the user document and
  the payment_methods collection, in that order of preference
- Stores card-form submissions as mock payment methods (last four digits only)
"""

import secrets
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.core.exceptions import BadRequestError
from app.core.logging import get_logger, LogContext
from app.db.mongo import get_clients_collection, get_payment_methods_collection
from app.models.user import stripe_customer_id
from utils.id_utils import owner_id_query

logger = get_logger(__name__)

DEFAULT_EXPIRY_MONTH = 1
DEFAULT_EXPIRY_YEAR = 2025


def _normalize(pm: Dict[str, Any], metadata: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
    """Common shape for a stored payment method; None when it has no id."""
    pm_id = pm.get("id") or pm.get("stripePaymentMethodId")
    if not pm_id:
        return None
    card = pm.get("card") or {}
    item = {
        "id": pm_id,
        "stripePaymentMethodId": pm.get("stripePaymentMethodId") or pm_id,
        "type": pm.get("type") or "card",
        "brand": pm.get("brand") or card.get("brand") or "unknown",
        "last4": pm.get("last4") or card.get("last4") or "****",
        "expiryMonth": pm.get("expiryMonth") or card.get("exp_month") or DEFAULT_EXPIRY_MONTH,
        "expiryYear": pm.get("expiryYear") or card.get("exp_year") or DEFAULT_EXPIRY_YEAR,
        "isDefault": bool(pm.get("isDefault")),
        "billingDetails": pm.get("billingDetails") or {},
    }
    if metadata is not None:
        item["metadata"] = metadata
    return item


async def _from_clients(user: Dict[str, Any]) -> List[Dict[str, Any]]:
    clients = get_clients_collection()
    has_methods = {"paymentMethods": {"$exists": True, "$ne": []}}

    found = await clients.find({**owner_id_query("userId", user["_id"]), **has_methods}).to_list(length=None)
    if not found and user.get("email"):
        found = await clients.find({"email": user["email"], **has_methods}).to_list(length=None)

    methods = []
    for client in found:
        for pm in client.get("paymentMethods") or []:
            if not isinstance(pm, dict):
                continue
            item = _normalize(pm, {
                "clientId": str(client["_id"]),
                "clientName": client.get("name") or "Unknown Client",
            })
            if item:
                methods.append(item)
    return methods


def _from_user(user: Dict[str, Any]) -> List[Dict[str, Any]]:
    if not stripe_customer_id(user):
        return []
    embedded = user.get("paymentMethods") or []
    return [item for item in (_normalize(pm) for pm in embedded if isinstance(pm, dict)) if item]


async def _from_collection(user: Dict[str, Any]) -> List[Dict[str, Any]]:
    collection = get_payment_methods_collection()
    found = await collection.find(owner_id_query("userId", user["_id"])).to_list(length=None)
    if not found and user.get("email"):
        found = await collection.find({"email": user["email"]}).to_list(length=None)

    methods = []
    for pm in found:
        pm = dict(pm)
        pm.setdefault("id", pm.get("stripePaymentMethodId") or str(pm["_id"]))
        item = _normalize(pm)
        if item:
            methods.append(item)
    return methods


async def list_payment_methods(user: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    The user's payment methods, default first.
    """
    with LogContext(user_id=str(user["_id"])):
        methods = await _from_clients(user)
        if not methods:
            methods = _from_user(user)
        if not methods:
            methods = await _from_collection(user)

        logger.info(f"Found {len(methods)} payment method(s)")
        # Stable sort keeps the stored order within each group
        return sorted(methods, key=lambda m: not m["isDefault"])


def _parse_int(value: Any, field: str) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise BadRequestError(f"Invalid {field}")


async def add_payment_method(
    user: Dict[str, Any],
    card_number: Optional[str],
    cardholder_name: Optional[str],
    expiry_month: Any,
    expiry_year: Any,
    cvc: Optional[str],
) -> Dict[str, Any]:
    """
    Stores a card as a mock payment method. Only the last four digits
    are kept; the card number and cvc are discarded.
    """
    if not card_number or not cardholder_name or not expiry_month or not expiry_year or not cvc:
        raise BadRequestError("Missing required payment information")

    digits = "".join(ch for ch in str(card_number) if ch.isdigit())
    if len(digits) < 4:
        raise BadRequestError("Invalid card number")

    month = _parse_int(expiry_month, "expiry month")
    if not 1 <= month <= 12:
        raise BadRequestError("Invalid expiry month")
    year = _parse_int(expiry_year, "expiry year")
    if year < 2000:
        year += 2000

    collection = get_payment_methods_collection()
    is_default = await collection.count_documents(owner_id_query("userId", user["_id"])) == 0

    now = datetime.utcnow()
    document = {
        "userId": user["_id"],
        "stripePaymentMethodId": f"pm_mock_{int(time.time() * 1000)}_{secrets.token_hex(6)}",
        "type": "card",
        "brand": "visa",
        "last4": digits[-4:],
        "expiryMonth": month,
        "expiryYear": year,
        "isDefault": is_default,
        "billingDetails": {"name": cardholder_name},
        "metadata": {},
        "createdAt": now,
        "updatedAt": now,
    }
    result = await collection.insert_one(document)
    logger.info(
        f"Payment method {document['stripePaymentMethodId']} added (default={is_default})",
        extra={"user_id": str(user["_id"])},
    )

    return {
        "id": str(result.inserted_id),
        "stripePaymentMethodId": document["stripePaymentMethodId"],
        "type": document["type"],
        "brand": document["brand"],
        "last4": document["last4"],
        "expiryMonth": month,
        "expiryYear": year,
        "isDefault": is_default,
        "billingDetails": document["billingDetails"],
    }
