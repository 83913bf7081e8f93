"""
app/services/vapi_client.py

Purpose: Vapi REST API client

- Assistants: list, create
- Phone numbers: list, get, create, update, delete
- Credentials: list (bring-your-own number imports)
"""

from typing import Any, Dict, List, Optional

import httpx

from app.core.config import settings
from app.core.exceptions import ExternalServiceError
from app.core.logging import get_logger

logger = get_logger(__name__)


class VapiError(ExternalServiceError):
    """Raised when a Vapi request fails. Carries the HTTP status and body text."""

    def __init__(self, message: str, status: Optional[int] = None, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(message, details={"status": status})


class VapiClient:
    """
    Thin async wrapper over the Vapi REST API.
    """

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = (base_url or settings.VAPI_BASE_URL).rstrip("/")
        self.api_key = api_key or settings.VAPI_PRIVATE_KEY
        self._timeout = timeout or settings.VAPI_TIMEOUT

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        if not self.api_key:
            raise VapiError("VAPI_PRIVATE_KEY not configured")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(base_url=self.base_url, timeout=self._timeout) as client:
                response = await client.request(method, path, json=json, headers=headers)
        except httpx.TimeoutException:
            logger.error(f"Vapi timeout: {method} {path}")
            raise VapiError("Vapi is taking too long to respond")
        except httpx.RequestError as e:
            logger.error(f"Network error calling Vapi {method} {path}: {e}")
            raise VapiError(f"Unable to reach Vapi: {e}")

        if response.status_code >= 400:
            logger.error(f"Vapi API error {response.status_code} on {method} {path}: {response.text[:500]}")
            raise VapiError(
                f"Vapi API error: {response.status_code} - {response.text}",
                status=response.status_code,
                body=response.text,
            )

        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _as_list(payload: Any) -> List[Dict[str, Any]]:
        # List endpoints return a bare array; some deployments wrap it in {"data": [...]}
        if isinstance(payload, dict):
            return payload.get("data") or []
        return payload or []

    async def list_assistants(self) -> List[Dict[str, Any]]:
        return self._as_list(await self._request("GET", "/assistant"))

    async def create_assistant(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        assistant = await self._request("POST", "/assistant", json=payload)
        logger.info(f"Vapi assistant created: {assistant.get('id')}")
        return assistant

    async def list_phone_numbers(self) -> List[Dict[str, Any]]:
        return self._as_list(await self._request("GET", "/phone-number"))

    async def get_phone_number(self, phone_number_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/phone-number/{phone_number_id}")

    async def create_phone_number(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        phone_number = await self._request("POST", "/phone-number", json=payload)
        logger.info(f"Vapi phone number created: {phone_number.get('id')}")
        return phone_number

    async def update_phone_number(self, phone_number_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PATCH", f"/phone-number/{phone_number_id}", json=payload)

    async def delete_phone_number(self, phone_number_id: str) -> None:
        await self._request("DELETE", f"/phone-number/{phone_number_id}")
        logger.info(f"Vapi phone number deleted: {phone_number_id}")

    async def list_credentials(self) -> List[Dict[str, Any]]:
        return self._as_list(await self._request("GET", "/credential"))


# Global Vapi client instance
_vapi_client: Optional[VapiClient] = None


def get_vapi_client() -> VapiClient:
    """Get or create the global Vapi client instance."""
    global _vapi_client
    if _vapi_client is None:
        _vapi_client = VapiClient()
    return _vapi_client


def reset_vapi_client():
    """Drop the cached client so the next call picks up fresh settings."""
    global _vapi_client
    _vapi_client = None
