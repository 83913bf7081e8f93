"""
app/core/security.py

Purpose: Dashboard session authentication

- Reads the bearer session token issued by the dashboard's sign-in flow
- Verifies it with the shared SECRET_KEY
- Exposes the signed-in email as a FastAPI dependency
"""

from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Request

from app.core.config import settings
from app.core.exceptions import UnauthorizedError
from app.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class SessionUser:
    email: str
    name: Optional[str] = None
    user_id: Optional[str] = None


def _extract_bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization") or ""
    if auth_header.lower().startswith("bearer "):
        token = auth_header[7:].strip()
        return token or None
    return None


def decode_session_token(token: str) -> SessionUser:
    """
    Decodes and verifies a session token.

    Raises:
        UnauthorizedError: If the token is invalid, expired or carries no email
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.SESSION_ALGORITHM],
        )
    except jwt.PyJWTError as e:
        logger.info(f"Rejected session token: {e}")
        raise UnauthorizedError()

    email = payload.get("email")
    if not email:
        raise UnauthorizedError()

    return SessionUser(
        email=str(email).strip().lower(),
        name=payload.get("name"),
        user_id=payload.get("sub"),
    )


def create_session_token(email: str, **claims) -> str:
    """Issues a session token. Used by maintenance scripts and tests."""
    payload = {"email": email, **claims}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.SESSION_ALGORITHM)


async def get_current_session(request: Request) -> SessionUser:
    """FastAPI dependency returning the signed-in dashboard user."""
    token = _extract_bearer_token(request)
    if not token:
        raise UnauthorizedError()
    return decode_session_token(token)

