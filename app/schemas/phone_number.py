"""
app/schemas/phone_number.py

Purpose: Phone number request bodies
"""

from typing import Optional

from pydantic import BaseModel


class PhoneNumberAssign(BaseModel):
    phoneNumberId: Optional[str] = None
    assistantId: Optional[str] = None


class PhoneNumberUnassign(BaseModel):
    phoneNumberId: Optional[str] = None


class PhoneNumberCreate(BaseModel):
    name: Optional[str] = None
    assistantId: Optional[str] = None


class PhoneNumberImport(BaseModel):
    """Bring-your-own number. assistantId is the Vapi assistant id."""
    phoneNumber: Optional[str] = None
    name: Optional[str] = None
    assistantId: Optional[str] = None
