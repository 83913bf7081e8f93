"""
app/services/phone_number_service.py

Purpose: Phone number management

- Lists Vapi numbers belonging to the user
- Creates and imports (bring-your-own) numbers in Vapi
- Assigns numbers to active assistants and unassigns them
- Deletes numbers in Vapi
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from app.core.config import settings
from app.core.exceptions import BadRequestError, ResourceNotFoundError, VoiceDeskError
from app.core.logging import get_logger, LogContext
from app.db.mongo import get_assistants_collection, get_phone_numbers_collection
from app.services.assistant_service import phone_error_message
from app.services.vapi_client import VapiError, get_vapi_client
from utils.id_utils import to_object_id

logger = get_logger(__name__)

UNASSIGNED_NAME = "Unassigned Phone Number"
BYO_PROVIDER = "byo-phone-number"


def _summary(phone: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": phone.get("id"),
        "number": phone.get("number"),
        "assistantId": phone.get("assistantId"),
        "status": phone.get("status"),
        "name": phone.get("name"),
        "createdAt": phone.get("createdAt"),
        "updatedAt": phone.get("updatedAt"),
    }


def belongs_to_user(phone: Dict[str, Any], user: Dict[str, Any], assistant_ids: set) -> bool:
    """
    A number is the user's when it is assigned to one of their assistants
    or carries their id (or, for older numbers, email) in metadata.
    """
    if phone.get("assistantId") and phone["assistantId"] in assistant_ids:
        return True
    metadata = phone.get("metadata") or {}
    if metadata.get("userId") == str(user["_id"]):
        return True
    return bool(user.get("email")) and metadata.get("userEmail") == user.get("email")


async def _user_assistant_ids(user: Dict[str, Any]) -> set:
    assistants = await get_assistants_collection().find({"userId": user["_id"]}).to_list(length=None)
    return {a.get("vapiAssistantId") for a in assistants if a.get("vapiAssistantId")}


async def _require_owned_number(user: Dict[str, Any], phone_number_id: str) -> Optional[Dict[str, Any]]:
    """
    Checks that a number is the user's before it is changed.

    A local mirror owned by the user is enough. Otherwise the Vapi number
    must pass belongs_to_user.

    Returns:
        The Vapi number when it was fetched, else None

    Raises:
        ResourceNotFoundError: If the number is missing or someone else's
    """
    mirror = await get_phone_numbers_collection().find_one({"vapiPhoneNumberId": phone_number_id})
    if mirror and to_object_id(mirror.get("userId")) == user["_id"]:
        return None

    try:
        remote = await get_vapi_client().get_phone_number(phone_number_id)
    except VapiError as e:
        if e.status == 404:
            raise ResourceNotFoundError("Phone number not found in your account")
        raise

    if not remote or not belongs_to_user(remote, user, await _user_assistant_ids(user)):
        logger.warning(f"Phone number {phone_number_id} is not owned by user", extra={"user_id": str(user["_id"])})
        raise ResourceNotFoundError("Phone number not found in your account")
    return remote


async def list_phone_numbers(user: Dict[str, Any], unassigned_only: bool = False) -> List[Dict[str, Any]]:
    vapi = get_vapi_client()
    remote_numbers = await vapi.list_phone_numbers()

    assistant_ids = await _user_assistant_ids(user)

    owned = [p for p in remote_numbers if belongs_to_user(p, user, assistant_ids)]
    if unassigned_only:
        owned = [p for p in owned if not p.get("assistantId")]

    logger.info(
        f"{len(owned)} of {len(remote_numbers)} phone number(s) belong to user",
        extra={"user_id": str(user["_id"])},
    )
    return [_summary(p) for p in owned]


async def create_phone_number(user: Dict[str, Any], name: Optional[str] = None, assistant_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Creates a free Vapi number tagged with the user's id and email.

    Raises:
        BadRequestError: With a friendly message when Vapi refuses
    """
    payload: Dict[str, Any] = {
        "metadata": {"userEmail": user.get("email"), "userId": str(user["_id"])},
    }
    if name:
        payload["name"] = name
    if assistant_id:
        payload["assistantId"] = assistant_id

    try:
        remote = await get_vapi_client().create_phone_number(payload)
    except VapiError as e:
        logger.error(f"Failed to create phone number: {e}")
        raise BadRequestError(phone_error_message(e))

    return {
        "id": remote.get("id"),
        "number": remote.get("number"),
        "areaCode": remote.get("areaCode") or "Auto-selected",
        "assistantId": remote.get("assistantId") or assistant_id,
        "status": remote.get("status"),
        "name": name or remote.get("name") or f"Phone Number {remote.get('number')}",
        "createdAt": remote.get("createdAt"),
    }


async def _resolve_credential_id() -> Optional[str]:
    """
    Credential for bring-your-own imports: a BYO credential from Vapi,
    else the first one listed, else the configured fallback.
    """
    try:
        credentials = await get_vapi_client().list_credentials()
    except VapiError as e:
        logger.warning(f"Could not list Vapi credentials: {e}")
        credentials = []

    if credentials:
        byo = next(
            (c for c in credentials
             if "byo" in (c.get("provider") or "").lower() or "byo" in (c.get("name") or "").lower()),
            None,
        )
        return (byo or credentials[0]).get("id")

    return settings.VAPI_BYO_CREDENTIAL_ID


def _import_error_message(error: VapiError) -> str:
    text = str(error).lower()
    if "credential" in text:
        return "Invalid credentials. Please check your credential ID."
    if "limit" in text:
        return "Phone number import limit reached."
    if "number" in text:
        return "Invalid phone number format or number not available."
    return "Failed to import phone number"


async def import_phone_number(
    user: Dict[str, Any],
    phone_number: Optional[str],
    name: Optional[str] = None,
    assistant_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Imports an existing number through a bring-your-own credential.

    Raises:
        BadRequestError: If no number is given or no credential is available
    """
    if not phone_number:
        raise BadRequestError("Phone number is required")

    credential_id = await _resolve_credential_id()
    if not credential_id:
        raise BadRequestError(
            "No phone number credentials configured. Please set up credentials in your Vapi dashboard first, "
            "or contact support for assistance.",
            details="This feature requires phone number provider credentials to be configured in Vapi.",
        )

    payload: Dict[str, Any] = {
        "provider": BYO_PROVIDER,
        "number": phone_number,
        "credentialId": credential_id,
        "name": name or f"BYO Number {phone_number}",
        "metadata": {"userEmail": user.get("email"), "userId": str(user["_id"])},
    }
    if assistant_id:
        payload["assistantId"] = assistant_id

    try:
        remote = await get_vapi_client().create_phone_number(payload)
    except VapiError as e:
        logger.error(f"Phone number import failed: {e}")
        raise VoiceDeskError(_import_error_message(e), code="EXTERNAL_SERVICE_ERROR", status_code=500)

    logger.info(f"Imported phone number {remote.get('id')}", extra={"user_id": str(user["_id"])})
    return {
        "id": remote.get("id"),
        "number": remote.get("number"),
        "name": remote.get("name"),
        "status": remote.get("status"),
        "provider": BYO_PROVIDER,
        "assistantId": remote.get("assistantId"),
        "credentialId": remote.get("credentialId"),
        "createdAt": remote.get("createdAt"),
    }


async def _get_or_mirror_number(user: Dict[str, Any], phone_number_id: str) -> Dict[str, Any]:
    """
    Local mirror of one of the user's Vapi numbers, created from Vapi
    when missing.

    Raises:
        ResourceNotFoundError: If the number is missing or someone else's
    """
    collection = get_phone_numbers_collection()
    mirror = await collection.find_one({"vapiPhoneNumberId": phone_number_id})
    if mirror:
        if to_object_id(mirror.get("userId")) != user["_id"]:
            raise ResourceNotFoundError("Phone number not found in your account")
        return mirror

    try:
        remote = await get_vapi_client().get_phone_number(phone_number_id)
    except VapiError as e:
        if e.status == 404:
            raise ResourceNotFoundError(
                "Phone number not found in your account",
                details="The phone number could not be found in the database or Vapi.",
            )
        raise
    if not remote or not belongs_to_user(remote, user, await _user_assistant_ids(user)):
        raise ResourceNotFoundError("Phone number not found in your account")

    now = datetime.utcnow()
    mirror = {
        "vapiPhoneNumberId": remote["id"],
        "number": remote.get("number"),
        "name": remote.get("name"),
        "status": remote.get("status"),
        "areaCode": remote.get("areaCode"),
        "userId": user["_id"],
        "metadata": remote.get("metadata") or {"userId": str(user["_id"]), "userEmail": user.get("email")},
        "createdAt": now,
        "updatedAt": now,
    }
    result = await collection.insert_one(mirror)
    mirror["_id"] = result.inserted_id
    logger.info(f"Mirrored phone number {mirror['number']} from Vapi")
    return mirror


async def assign_phone_number(user: Dict[str, Any], phone_number_id: Optional[str], assistant_id: Optional[str]) -> Dict[str, Any]:
    """
    Points a Vapi number at one of the user's active assistants.

    Raises:
        BadRequestError: Missing ids, inactive assistant, or account limit reached
        ResourceNotFoundError: Assistant or number not found
    """
    if not phone_number_id or not assistant_id:
        raise BadRequestError("Phone number ID and assistant ID are required")

    assistants = get_assistants_collection()
    oid = to_object_id(assistant_id)
    assistant = await assistants.find_one({"_id": oid, "userId": user["_id"]}) if oid else None
    if not assistant:
        raise ResourceNotFoundError("Assistant not found")

    if assistant.get("status") != "active":
        raise BadRequestError("Only active assistants can be assigned to phone numbers")

    with LogContext(user_id=str(user["_id"])):
        # Reassigning an assistant's existing line does not count toward the limit
        current = (assistant.get("phoneNumber") or {}).get("id")
        if not current:
            assigned_count = await assistants.count_documents({
                "userId": user["_id"],
                "phoneNumber.id": {"$exists": True, "$ne": None},
            })
            if assigned_count >= settings.MAX_PHONE_NUMBERS_PER_USER:
                raise BadRequestError(
                    f"You can only have {settings.MAX_PHONE_NUMBERS_PER_USER} phone numbers per account"
                )

        # Ownership is checked while mirroring
        mirror = await _get_or_mirror_number(user, phone_number_id)
        line_name = f"{assistant.get('name')} Phone Line"

        try:
            await get_vapi_client().update_phone_number(phone_number_id, {
                "assistantId": assistant["vapiAssistantId"],
                "name": line_name,
            })
        except VapiError as e:
            raise VoiceDeskError(f"Failed to assign phone number: {e}", code="EXTERNAL_SERVICE_ERROR", status_code=500)

        # Update local records
        now = datetime.utcnow()
        await get_phone_numbers_collection().update_one(
            {"_id": mirror["_id"]},
            {"$set": {
                "vapiAssistantId": assistant["vapiAssistantId"],
                "assistantId": assistant["_id"],
                "name": line_name,
                "updatedAt": now,
            }},
        )

        phone_number = {
            "id": mirror["vapiPhoneNumberId"],
            "number": mirror.get("number"),
            "status": mirror.get("status"),
            "areaCode": mirror.get("areaCode"),
        }
        await assistants.update_one(
            {"_id": assistant["_id"]},
            {"$set": {"phoneNumber": phone_number, "updatedAt": now}},
        )
        logger.info(f"Phone number {phone_number_id} assigned to {assistant.get('name')}")

        return {
            "id": str(assistant["_id"]),
            "name": assistant.get("name"),
            "phoneNumber": phone_number,
        }


async def unassign_phone_number(user: Dict[str, Any], phone_number_id: Optional[str]) -> Dict[str, Any]:
    """
    Clears a number's assistant in Vapi and on the owning assistant,
    found by number id or by the Vapi assistant id the number points at.
    """
    if not phone_number_id:
        raise BadRequestError("Phone number ID is required")

    assistants = get_assistants_collection()
    vapi = get_vapi_client()

    # A number on one of the user's assistants is theirs
    assistant = await assistants.find_one({"userId": user["_id"], "phoneNumber.id": phone_number_id})
    if not assistant:
        remote = await _require_owned_number(user, phone_number_id)
        if remote and remote.get("assistantId"):
            assistant = await assistants.find_one({
                "userId": user["_id"],
                "vapiAssistantId": remote["assistantId"],
            })

    try:
        await vapi.update_phone_number(phone_number_id, {"assistantId": None, "name": UNASSIGNED_NAME})
    except VapiError as e:
        raise VoiceDeskError(f"Failed to unassign phone number: {e}", code="EXTERNAL_SERVICE_ERROR", status_code=500)

    now = datetime.utcnow()
    await get_phone_numbers_collection().update_one(
        {"vapiPhoneNumberId": phone_number_id},
        {"$set": {"assistantId": None, "vapiAssistantId": None, "name": UNASSIGNED_NAME, "updatedAt": now}},
    )

    if not assistant:
        return {"message": "Phone number unassigned successfully (no local assistant found)"}

    await assistants.update_one(
        {"_id": assistant["_id"]},
        {"$set": {"phoneNumber": None, "updatedAt": now}},
    )
    logger.info(f"Phone number {phone_number_id} unassigned from {assistant.get('name')}")
    return {
        "message": "Phone number unassigned successfully",
        "assistant": {"id": str(assistant["_id"]), "name": assistant.get("name")},
    }


async def delete_phone_number(user: Dict[str, Any], phone_number_id: Optional[str]) -> None:
    """
    Deletes one of the user's numbers in Vapi and drops its local mirror.

    Raises:
        BadRequestError: If no id is given
        ResourceNotFoundError: If the number is not the user's
    """
    if not phone_number_id:
        raise BadRequestError("Phone number ID is required")

    on_assistant = await get_assistants_collection().find_one(
        {"userId": user["_id"], "phoneNumber.id": phone_number_id}
    )
    if not on_assistant:
        await _require_owned_number(user, phone_number_id)

    try:
        await get_vapi_client().delete_phone_number(phone_number_id)
    except VapiError as e:
        raise VoiceDeskError(f"Failed to delete phone number: {e}", code="EXTERNAL_SERVICE_ERROR", status_code=500)
    await get_phone_numbers_collection().delete_one({"vapiPhoneNumberId": phone_number_id})
