"""
app/services/user_service.py

Purpose: User data management

- User lookup by session email, Stripe customer id and ObjectId
- Creating users on first checkout
- Profile view with defaults
- Profile, notification, security and verification updates
"""

from app.db.mongo import get_users_collection
from app.core.exceptions import BadRequestError, ResourceNotFoundError, ValidationError
from app.core.logging import get_logger, LogContext
from app.models.user import (
    DEFAULT_NOTIFICATIONS,
    DEFAULT_PROFILE,
    PROFILE_TEXT_FIELDS,
    new_user_document,
)
from datetime import datetime
from typing import Optional, Dict, Any

from bson import ObjectId

from utils.id_utils import to_object_id

logger = get_logger(__name__)

# Boolean flags each PATCH type may change
PATCH_FIELDS = {
    "notifications": tuple(DEFAULT_NOTIFICATIONS),
    "security": ("twoFactorEnabled",),
    "verification": ("emailVerified", "phoneVerified"),
}


async def get_user_by_email(email: str) -> Optional[Dict[str, Any]]:
    """
    Retrieves a user by email (case-insensitive, stored lowercased).
    """
    if not email:
        return None
    users = get_users_collection()
    return await users.find_one({"email": email.strip().lower()})


async def get_user_by_customer_id(customer_id: str) -> Optional[Dict[str, Any]]:
    """
    Retrieves a user by Stripe customer id, including users whose id
    was stored under the legacy stripeCustomerId field.
    """
    if not customer_id:
        return None
    users = get_users_collection()
    return await users.find_one({
        "$or": [{"customerId": customer_id}, {"stripeCustomerId": customer_id}]
    })


async def get_user_by_id(user_id: Any) -> Optional[Dict[str, Any]]:
    """
    Retrieves a user by ObjectId or its hex string.
    """
    oid = to_object_id(user_id)
    if oid is None:
        return None
    users = get_users_collection()
    return await users.find_one({"_id": oid})


async def require_user(email: str) -> Dict[str, Any]:
    """
    Returns the signed-in user's document.

    Raises:
        ResourceNotFoundError: If no user exists for the session email
    """
    user = await get_user_by_email(email)
    if not user:
        raise ResourceNotFoundError("User not found")
    return user


async def create_user(email: str, name: Optional[str] = None) -> Dict[str, Any]:
    """
    Creates a user with dashboard defaults and returns the stored document.
    """
    users = get_users_collection()
    user = new_user_document(email, name)
    result = await users.insert_one(user)
    user["_id"] = result.inserted_id
    logger.info(f"New user created: {user['email']}", extra={"user_id": str(result.inserted_id)})
    return user


async def update_user(user_id: ObjectId, fields: Dict[str, Any]) -> bool:
    """
    Sets fields on a user and bumps updatedAt.
    """
    users = get_users_collection()
    update = dict(fields)
    update["updatedAt"] = datetime.utcnow()
    result = await users.update_one({"_id": user_id}, {"$set": update})
    return result.matched_count > 0


def _section_update(user: Dict[str, Any], section: str, values: Dict[str, Any]) -> Dict[str, Any]:
    # Dotted $set fails when the stored section is null, so write it whole
    if not values:
        return {}
    if isinstance(user.get(section), dict):
        return {f"{section}.{key}": value for key, value in values.items()}
    return {section: dict(values)}


def build_profile_view(user: Dict[str, Any]) -> Dict[str, Any]:
    """
    Flattens a user document into the dashboard profile shape,
    filling defaults for anything missing.
    """
    profile = user.get("profile") or {}
    notifications = user.get("notifications") or {}
    subscription = user.get("subscription") or {}
    usage = user.get("usage") or {}

    view = {
        "id": str(user["_id"]),
        "name": user.get("name") or "",
        "email": user.get("email"),
        "image": user.get("image") or "",
    }
    for field in PROFILE_TEXT_FIELDS:
        view[field] = profile.get(field) or DEFAULT_PROFILE[field]
    for flag in ("emailVerified", "phoneVerified", "twoFactorEnabled"):
        view[flag] = bool(profile.get(flag, False))

    view["notifications"] = {
        key: notifications[key] if notifications.get(key) is not None else default
        for key, default in DEFAULT_NOTIFICATIONS.items()
    }
    view["subscription"] = {
        "planName": subscription.get("planName"),
        "status": subscription.get("status") or "inactive",
        "currentPeriodStart": subscription.get("currentPeriodStart"),
        "currentPeriodEnd": subscription.get("currentPeriodEnd"),
        "billingCycle": subscription.get("billingCycle") or "monthly",
    }
    view["usage"] = {
        "minutesUsed": usage.get("minutesUsed") or 0,
        "minutesLimit": usage.get("minutesLimit") or 0,
        "callsThisMonth": usage.get("callsThisMonth") or 0,
        "lastResetDate": usage.get("lastResetDate") or datetime.utcnow(),
    }
    return view


async def update_profile(email: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Applies a profile update. Only keys present in `changes` are written;
    notification flags are merged individually.

    Returns:
        The updated profile summary
    """
    user = await require_user(email)

    with LogContext(user_id=str(user["_id"])):
        update: Dict[str, Any] = {}
        if "name" in changes:
            update["name"] = changes["name"]
        update.update(_section_update(
            user, "profile", {f: changes[f] for f in PROFILE_TEXT_FIELDS if f in changes}
        ))
        update.update(_section_update(
            user, "notifications",
            {k: v for k, v in (changes.get("notifications") or {}).items() if v is not None},
        ))

        if update:
            await update_user(user["_id"], update)
            logger.info(f"Profile updated: {sorted(update)}")

        user = await require_user(email)
        profile = user.get("profile") or {}
        summary = {
            "id": str(user["_id"]),
            "name": user.get("name"),
            "email": user.get("email"),
        }
        for field in PROFILE_TEXT_FIELDS:
            summary[field] = profile.get(field)
        return summary


def _boolean_flags(data: Dict[str, Any], allowed: tuple) -> Dict[str, bool]:
    """
    Picks the allowed flags out of a PATCH body. Unknown keys are ignored.

    Raises:
        ValidationError: If an allowed flag is not a boolean
    """
    values = {}
    for key in allowed:
        value = data.get(key)
        if value is None:
            continue
        if not isinstance(value, bool):
            raise ValidationError(f"{key} must be true or false", details={"field": key})
        values[key] = value
    return values


async def patch_profile(email: str, update_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Applies a typed partial update.

    Args:
        email: Session email
        update_type: notifications, security or verification
        data: Flags to change

    Returns:
        The section that was updated, as stored

    Raises:
        BadRequestError: If update_type is not recognized
        ValidationError: If a flag is not a boolean
    """
    if update_type not in PATCH_FIELDS:
        raise BadRequestError("Invalid update type")

    user = await require_user(email)
    values = _boolean_flags(data or {}, PATCH_FIELDS[update_type])
    section = "notifications" if update_type == "notifications" else "profile"

    update = _section_update(user, section, values)

    if update:
        await update_user(user["_id"], update)
        logger.info(f"{update_type} updated", extra={"user_id": str(user["_id"])})

    user = await require_user(email)
    profile = user.get("profile") or {}

    if update_type == "notifications":
        return dict(user.get("notifications") or {})
    if update_type == "security":
        return {"twoFactorEnabled": profile.get("twoFactorEnabled")}
    return {
        "emailVerified": profile.get("emailVerified"),
        "phoneVerified": profile.get("phoneVerified"),
    }
