"""
app/api/stats.py

Purpose: Dashboard overview statistics endpoint
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from app.api.deps import get_current_user
from app.services.stats_service import get_dashboard_stats

router = APIRouter()


@router.get("/stats")
async def dashboard_stats(user: Dict[str, Any] = Depends(get_current_user)):
    return await get_dashboard_stats(user)
