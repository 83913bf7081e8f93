"""
app/api/phone_numbers.py

Purpose: Phone number endpoints

- List the user's Vapi numbers (optionally only unassigned ones)
- Create, import, assign, unassign and delete
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_current_user
from app.schemas.phone_number import (
    PhoneNumberAssign,
    PhoneNumberCreate,
    PhoneNumberImport,
    PhoneNumberUnassign,
)
from app.services import phone_number_service

router = APIRouter()


@router.get("")
async def list_phone_numbers(
    unassigned: bool = Query(False),
    user: Dict[str, Any] = Depends(get_current_user),
):
    phone_numbers = await phone_number_service.list_phone_numbers(user, unassigned_only=unassigned)
    return {"success": True, "phoneNumbers": phone_numbers}


@router.delete("")
async def delete_phone_number(
    id: Optional[str] = Query(None),
    user: Dict[str, Any] = Depends(get_current_user),
):
    await phone_number_service.delete_phone_number(user, id)
    return {"success": True, "message": "Phone number deleted successfully"}


@router.post("/create")
async def create_phone_number(body: PhoneNumberCreate, user: Dict[str, Any] = Depends(get_current_user)):
    phone_number = await phone_number_service.create_phone_number(user, body.name, body.assistantId)
    return {"phoneNumber": phone_number, "message": "Phone number created successfully"}


@router.post("/import", status_code=status.HTTP_201_CREATED)
async def import_phone_number(body: PhoneNumberImport, user: Dict[str, Any] = Depends(get_current_user)):
    phone_number = await phone_number_service.import_phone_number(
        user, body.phoneNumber, name=body.name, assistant_id=body.assistantId
    )
    return {
        "success": True,
        "phoneNumber": phone_number,
        "message": "Phone number imported successfully",
    }


@router.post("/assign")
async def assign_phone_number(body: PhoneNumberAssign, user: Dict[str, Any] = Depends(get_current_user)):
    assistant = await phone_number_service.assign_phone_number(user, body.phoneNumberId, body.assistantId)
    return {
        "success": True,
        "message": "Phone number assigned successfully",
        "assistant": assistant,
    }


@router.post("/unassign")
async def unassign_phone_number(body: PhoneNumberUnassign, user: Dict[str, Any] = Depends(get_current_user)):
    result = await phone_number_service.unassign_phone_number(user, body.phoneNumberId)
    return {"success": True, **result}
