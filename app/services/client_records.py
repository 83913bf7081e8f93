"""
app/services/client_records.py

Purpose: Legacy client document access

- Ownership lookup tolerant of the three stored userId forms
- Email and email-domain fallbacks used by the invoice refresh
- Appending webhook transactions to a user's client document
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId

from app.db.mongo import get_clients_collection
from app.core.logging import get_logger
from utils.id_utils import owner_id_matches, owner_id_query

logger = get_logger(__name__)


def client_belongs_to(client: Dict[str, Any], user: Dict[str, Any]) -> bool:
    """True when the client's userId points at the user in any stored form."""
    return owner_id_matches(client.get("userId"), user["_id"])


def _email_domain(email: Optional[str]) -> Optional[str]:
    if not email or "@" not in email:
        return None
    return email.rsplit("@", 1)[1].strip().lower() or None


async def find_clients_for_user(user_id: ObjectId) -> List[Dict[str, Any]]:
    """
    Client documents owned by the user, whichever way userId was stored.
    """
    clients = get_clients_collection()
    found = await clients.find(owner_id_query("userId", user_id)).to_list(length=None)
    return [c for c in found if owner_id_matches(c.get("userId"), user_id)]


async def find_client_for_user(user_id: ObjectId) -> Optional[Dict[str, Any]]:
    found = await find_clients_for_user(user_id)
    return found[0] if found else None


async def find_client_by_email(email: str) -> Optional[Dict[str, Any]]:
    if not email:
        return None
    clients = get_clients_collection()
    return await clients.find_one({"email": email})


async def find_clients_with_history() -> List[Dict[str, Any]]:
    """
    All clients carrying at least one purchase or transaction.
    """
    clients = get_clients_collection()
    query = {
        "$or": [
            {"purchases": {"$exists": True, "$ne": []}},
            {"transactions": {"$exists": True, "$ne": []}},
        ]
    }
    found = await clients.find(query).to_list(length=None)
    return [c for c in found if c.get("purchases") or c.get("transactions")]


def select_clients_for_user(candidates: List[Dict[str, Any]], user: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Narrows a scan of client documents to the user's own.

    Matches by foreign key or exact email first. When nothing matches,
    falls back to clients sharing the user's email domain.
    """
    email = (user.get("email") or "").lower()
    matched = [
        c for c in candidates
        if client_belongs_to(c, user) or (email and (c.get("email") or "").lower() == email)
    ]
    if matched:
        return matched

    domain = _email_domain(email)
    if not domain:
        return []
    fallback = [c for c in candidates if _email_domain(c.get("email")) == domain]
    if fallback:
        logger.warning(
            f"No client matched user directly, using {len(fallback)} client(s) from domain {domain}",
            extra={"user_id": str(user["_id"])},
        )
    return fallback


async def add_transaction(user: Dict[str, Any], transaction: Dict[str, Any]) -> None:
    """
    Adds a transaction to the user's client document, creating the
    document when the user has none. A transaction already present
    (same id) is not added again.
    """
    clients = get_clients_collection()
    existing = await find_client_for_user(user["_id"])

    fields = {
        "updatedAt": datetime.utcnow(),
        "name": (existing or {}).get("name") or user.get("name") or "Customer",
        "email": user.get("email"),
    }

    # Legacy documents may hold a non-list transactions field
    if existing is not None:
        transactions = existing.get("transactions")
        already = any(
            isinstance(t, dict) and t.get("id") == transaction["id"]
            for t in transactions or []
        )
        update: Dict[str, Any] = {"$set": fields}
        if not isinstance(transactions, list):
            fields["transactions"] = [transaction]
        elif not already:
            update["$addToSet"] = {"transactions": transaction}
        await clients.update_one({"_id": existing["_id"]}, update)
        if already:
            logger.info(f"Transaction {transaction['id']} already recorded, skipping")
        return

    # No client yet
    await clients.update_one(
        {"userId": user["_id"]},
        {"$set": fields, "$addToSet": {"transactions": transaction}},
        upsert=True,
    )
    logger.info(f"Created client record for user with transaction {transaction['id']}")


async def mark_subscription_canceled(user: Dict[str, Any]) -> bool:
    """Marks the user's client subscription snapshot canceled."""
    client = await find_client_for_user(user["_id"]) or await find_client_by_email(user.get("email"))
    if not client:
        return False
    subscription = dict(client.get("subscription") or {})
    subscription.update({"status": "canceled", "canceled_at": datetime.utcnow()})
    clients = get_clients_collection()
    await clients.update_one(
        {"_id": client["_id"]},
        {"$set": {"subscription": subscription, "updatedAt": datetime.utcnow()}},
    )
    return True
