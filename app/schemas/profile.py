"""
app/schemas/profile.py

Purpose: Profile request bodies

- Full profile update (PUT)
- Typed partial update (PATCH) for notifications, security, verification
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class NotificationSettings(BaseModel):
    emailNotifications: Optional[bool] = None
    smsNotifications: Optional[bool] = None
    callAlerts: Optional[bool] = None
    billingAlerts: Optional[bool] = None
    marketingEmails: Optional[bool] = None


class ProfileUpdate(BaseModel):
    """
    Profile form submission. Fields left out of the body are not touched.
    """
    name: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    timezone: Optional[str] = None
    notifications: Optional[NotificationSettings] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "name": "Jane Doe",
                "company": "Acme Dental",
                "timezone": "America/Chicago",
                "notifications": {"marketingEmails": True},
            }
        }
    }


class ProfilePatch(BaseModel):
    type: str = Field(..., description="notifications, security or verification")
    data: Dict[str, Any] = Field(default_factory=dict)
