"""
app/api/deps.py

Purpose: Shared route dependencies
"""

from typing import Any, Dict

from fastapi import Depends

from app.core.security import SessionUser, get_current_session
from app.services.user_service import require_user


async def get_current_user(session: SessionUser = Depends(get_current_session)) -> Dict[str, Any]:
    """
    The signed-in user's document.

    Raises:
        UnauthorizedError: No valid session token
        ResourceNotFoundError: Session email has no user document
    """
    return await require_user(session.email)
