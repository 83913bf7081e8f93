"""
app/api/invoices.py

Purpose: Dashboard invoice endpoints

- GET lists stored invoices, rebuilding them from client transactions when none exist
- POST forces a full rebuild from client purchases and transactions
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from app.api.deps import get_current_user
from app.services import invoice_service

router = APIRouter()


@router.get("/invoices")
async def list_invoices(user: Dict[str, Any] = Depends(get_current_user)):
    return await invoice_service.get_invoices(user)


@router.post("/invoices")
async def refresh_invoices(user: Dict[str, Any] = Depends(get_current_user)):
    return await invoice_service.refresh_invoices(user)
