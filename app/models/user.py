"""
app/models/user.py

Purpose: User document model

- Identity (name, email, image)
- Stripe customer and price ids, access flag
- Profile, notification preferences, usage counters
- Subscription snapshot kept alongside Stripe
"""

from datetime import datetime
from typing import Any, Dict, Optional

DEFAULT_PROFILE = {
    "phone": "",
    "company": "",
    "address": "",
    "city": "",
    "state": "",
    "country": "United States",
    "timezone": "America/New_York",
    "emailVerified": False,
    "phoneVerified": False,
    "twoFactorEnabled": False,
}

DEFAULT_NOTIFICATIONS = {
    "emailNotifications": True,
    "smsNotifications": False,
    "callAlerts": True,
    "billingAlerts": True,
    "marketingEmails": False,
}

PROFILE_TEXT_FIELDS = ("phone", "company", "address", "city", "state", "country", "timezone")


def new_user_document(email: str, name: Optional[str] = None) -> Dict[str, Any]:
    """
    Returns a fresh user document with dashboard defaults.
    """
    now = datetime.utcnow()
    return {
        "name": name,
        "email": email.strip().lower(),
        "image": None,
        "hasAccess": False,
        "profile": dict(DEFAULT_PROFILE),
        "notifications": dict(DEFAULT_NOTIFICATIONS),
        "usage": {
            "minutesUsed": 0,
            "minutesLimit": 0,
            "callsThisMonth": 0,
            "lastResetDate": now,
        },
        "subscription": {
            "planName": None,
            "status": "inactive",
            "currentPeriodStart": None,
            "currentPeriodEnd": None,
            "billingCycle": "monthly",
        },
        "createdAt": now,
        "updatedAt": now,
    }


def stripe_customer_id(user: Dict[str, Any]) -> Optional[str]:
    """
    The user's Stripe customer id. Older checkout code stored it as
    stripeCustomerId, the webhook stores customerId.
    """
    return user.get("customerId") or user.get("stripeCustomerId")
