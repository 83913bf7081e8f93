"""
app/services/assistant_service.py

Purpose: Voice assistant management

- Lists the user's assistants with call statistics
- Creates assistants in Vapi (optionally with a phone line) and mirrors them
- Status, name, description and configuration updates
- Deletion and import of assistants that exist only in Vapi
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from app.core.exceptions import BadRequestError, ResourceNotFoundError, VoiceDeskError
from app.core.logging import get_logger, LogContext
from app.db.mongo import get_assistants_collection, get_calls_collection
from app.services.vapi_client import VapiError, get_vapi_client
from utils.id_utils import to_object_id
from utils.time_utils import format_duration, parse_date, start_of_day, time_ago

logger = get_logger(__name__)

ASSISTANT_STATUSES = ("active", "inactive", "training")
UPDATABLE_FIELDS = ("status", "name", "description", "configuration")
NOT_FOUND_MESSAGE = "Assistant not found or access denied"


def phone_error_message(error: Exception) -> str:
    """Friendly message for a failed phone number creation."""
    text = str(error).lower()
    if "limit" in text:
        return "Phone number limit reached (max 10 free numbers)"
    if "area code" in text:
        return "Invalid area code or area code not available"
    return "Failed to create phone number - this feature may need Vapi dashboard setup first"


def _empty_statistics() -> Dict[str, Any]:
    return {"totalCalls": 0, "callsToday": 0, "avgDuration": 0, "successRate": 0}


async def _assistant_call_stats(assistant_id: Any, today: datetime, now: datetime) -> Dict[str, Any]:
    calls = await get_calls_collection().find({"assistantId": assistant_id}).to_list(length=None)
    total = len(calls)
    created = [parse_date(c.get("createdAt")) for c in calls]
    calls_today = sum(1 for d in created if d and d >= today)
    successful = sum(1 for c in calls if c.get("outcome") == "successful")
    avg_duration = sum((c.get("duration") or 0) for c in calls) / total if total else 0
    last_call = max((d for d in created if d), default=None)

    return {
        "callsToday": calls_today,
        "totalCalls": total,
        "avgDuration": format_duration(avg_duration),
        "successRate": round(successful / total * 100, 1) if total else 0,
        "lastActive": time_ago(last_call, now) if last_call else "Never",
    }


async def list_assistants(user: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    The user's assistants, newest first, with per-assistant call stats
    and overall totals.
    """
    now = now or datetime.utcnow()
    today = start_of_day(now)
    cursor = get_assistants_collection().find({"userId": user["_id"]}).sort("createdAt", -1)
    assistants = await cursor.to_list(length=None)

    enhanced = []
    for assistant in assistants:
        stats = await _assistant_call_stats(assistant["_id"], today, now)
        created = assistant.get("createdAt")
        enhanced.append({
            "id": str(assistant["_id"]),
            "name": assistant.get("name"),
            "description": assistant.get("description"),
            "status": assistant.get("status"),
            "type": assistant.get("type"),
            **stats,
            "createdAt": created.date().isoformat() if isinstance(created, datetime) else created,
            "vapiAssistantId": assistant.get("vapiAssistantId"),
            "configuration": assistant.get("configuration") or {},
            "phoneNumber": assistant.get("phoneNumber"),
        })

    count = len(enhanced)
    avg_success = sum(a["successRate"] for a in enhanced) / count if count else 0
    return {
        "assistants": enhanced,
        "stats": {
            "totalAssistants": count,
            "activeAssistants": sum(1 for a in assistants if a.get("status") == "active"),
            "totalCallsToday": sum(a["callsToday"] for a in enhanced),
            "avgSuccessRate": round(avg_success, 1),
        },
    }


def build_vapi_assistant(name: str, assistant_type: str, description: str, configuration: Dict[str, Any]) -> Dict[str, Any]:
    """Vapi create-assistant payload."""
    kind = assistant_type.replace("_", " ", 1)
    return {
        "name": name,
        "model": {
            "provider": "openai",
            "model": "gpt-3.5-turbo",
            "messages": [
                {
                    "role": "system",
                    "content": f"You are {name}, a helpful {kind} assistant. {description or ''}",
                }
            ],
        },
        "voice": {
            "provider": "openai",
            "voiceId": (configuration or {}).get("voice") or "alloy",
        },
        "firstMessage": f"Hello! I'm {name}, your {kind} assistant. How can I help you today?",
    }


async def create_assistant(
    user: Dict[str, Any],
    name: Optional[str],
    assistant_type: Optional[str],
    description: Optional[str] = None,
    configuration: Optional[Dict[str, Any]] = None,
    create_phone_number: bool = True,
) -> Dict[str, Any]:
    """
    Creates the assistant in Vapi, then optionally a phone line for it,
    then stores the local mirror as inactive.

    Raises:
        BadRequestError: If name or type is missing
        VoiceDeskError: 500 if Vapi refuses the assistant
    """
    if not name or not assistant_type:
        raise BadRequestError("Name and type are required")

    vapi = get_vapi_client()
    user_id = str(user["_id"])

    with LogContext(user_id=user_id):
        # Vapi first; nothing is stored if it refuses
        try:
            remote = await vapi.create_assistant(
                build_vapi_assistant(name, assistant_type, description or "", configuration or {})
            )
        except VapiError as e:
            logger.error(f"Failed to create assistant in Vapi: {e}")
            raise VoiceDeskError(
                "Failed to create assistant in Vapi. Please check your API configuration.",
                code="EXTERNAL_SERVICE_ERROR",
                status_code=500,
            )
        vapi_assistant_id = remote["id"]

        phone_number = None
        warning = None
        # A failed phone line only downgrades the response to a warning
        if create_phone_number:
            try:
                remote_number = await vapi.create_phone_number({
                    "name": f"{name} Phone Line",
                    "assistantId": vapi_assistant_id,
                    "metadata": {"userEmail": user.get("email"), "userId": user_id},
                })
                phone_number = {
                    "id": remote_number.get("id"),
                    "number": remote_number.get("number"),
                    "status": remote_number.get("status"),
                }
            except VapiError as e:
                logger.warning(f"Phone number creation failed: {e}")
                warning = f"Assistant created but phone number failed: {phone_error_message(e)}"

        # Store local mirror
        now = datetime.utcnow()
        document = {
            "userId": user["_id"],
            "vapiAssistantId": vapi_assistant_id,
            "name": name,
            "description": description or "",
            "type": assistant_type,
            "status": "inactive",
            "configuration": configuration or {},
            "phoneNumber": phone_number,
            "statistics": _empty_statistics(),
            "createdAt": now,
            "updatedAt": now,
        }
        result = await get_assistants_collection().insert_one(document)
        logger.info(f"Assistant {name} created ({vapi_assistant_id})")

        response = {
            "message": "Assistant created successfully",
            "assistant": {
                "id": str(result.inserted_id),
                "name": name,
                "description": document["description"],
                "status": "inactive",
                "type": assistant_type,
                "vapiAssistantId": vapi_assistant_id,
                "phoneNumber": phone_number,
            },
        }
        if warning:
            response["warning"] = warning
        return response


async def get_owned_assistant(user: Dict[str, Any], assistant_id: str) -> Dict[str, Any]:
    oid = to_object_id(assistant_id)
    assistant = None
    if oid is not None:
        assistant = await get_assistants_collection().find_one({"_id": oid, "userId": user["_id"]})
    if not assistant:
        raise ResourceNotFoundError(NOT_FOUND_MESSAGE)
    return assistant


async def update_assistant(user: Dict[str, Any], assistant_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Updates the allowed fields of an owned assistant.

    Raises:
        ResourceNotFoundError: If the assistant is not the user's
        BadRequestError: If the status is not a known one
    """
    assistant = await get_owned_assistant(user, assistant_id)
    updates = {field: changes[field] for field in UPDATABLE_FIELDS if changes.get(field) is not None}

    if "status" in updates and updates["status"] not in ASSISTANT_STATUSES:
        raise BadRequestError("Invalid status. Must be: active, inactive, or training")
    if "status" in updates:
        logger.info(f"Assistant {assistant.get('name')} status: {assistant.get('status')} -> {updates['status']}")

    updates["updatedAt"] = datetime.utcnow()
    await get_assistants_collection().update_one({"_id": assistant["_id"]}, {"$set": updates})
    assistant.update(updates)

    return {
        "id": str(assistant["_id"]),
        "name": assistant.get("name"),
        "description": assistant.get("description"),
        "status": assistant.get("status"),
        "type": assistant.get("type"),
        "configuration": assistant.get("configuration") or {},
        "updatedAt": assistant["updatedAt"],
    }


async def delete_assistant(user: Dict[str, Any], assistant_id: str) -> None:
    """Deletes an owned assistant's local record."""
    oid = to_object_id(assistant_id)
    deleted = None
    if oid is not None:
        deleted = await get_assistants_collection().find_one_and_delete({"_id": oid, "userId": user["_id"]})
    if not deleted:
        raise ResourceNotFoundError(NOT_FOUND_MESSAGE)
    # TODO: also delete the assistant in Vapi
    logger.info(f"Assistant {deleted.get('name') or 'Unknown'} deleted", extra={"user_id": str(user["_id"])})


def _imported_type(remote: Dict[str, Any]) -> str:
    tools = remote.get("tools") or []
    if any(t.get("type") == "code_interpreter" for t in tools if isinstance(t, dict)):
        return "coding"
    if any(t.get("type") == "retrieval" for t in tools if isinstance(t, dict)):
        return "knowledge_base"
    return "general"


async def import_assistants(user: Dict[str, Any]) -> Dict[str, Any]:
    """
    Mirrors Vapi assistants that are not yet stored for the user,
    attaching any phone number already assigned to them in Vapi.
    """
    collection = get_assistants_collection()
    vapi = get_vapi_client()

    existing = await collection.find({"userId": user["_id"]}).to_list(length=None)
    known_ids = {a.get("vapiAssistantId") for a in existing}

    remote_assistants = [a for a in await vapi.list_assistants() if a.get("id") not in known_ids]
    if not remote_assistants:
        return {"message": "No new assistants found to import", "imported": 0}

    try:
        remote_numbers = await vapi.list_phone_numbers()
    except VapiError as e:
        logger.error(f"Error fetching phone numbers for import: {e}")
        remote_numbers = []

    imported: List[Dict[str, Any]] = []
    for remote in remote_assistants:
        try:
            assigned = next((p for p in remote_numbers if p.get("assistantId") == remote["id"]), None)
            phone_number = None
            if assigned:
                phone_number = {
                    "id": assigned.get("id"),
                    "number": assigned.get("number"),
                    "status": assigned.get("status"),
                    "areaCode": assigned.get("areaCode"),
                }

            now = datetime.utcnow()
            document = {
                "userId": user["_id"],
                "vapiAssistantId": remote["id"],
                "name": remote.get("name") or "Imported Assistant",
                "description": (remote.get("instructions") or "")[:200],
                "type": _imported_type(remote),
                "status": "active",
                "configuration": {
                    "voice": (remote.get("voice") or {}).get("voiceId") or "alloy",
                    "model": remote.get("model") or "gpt-4",
                },
                "phoneNumber": phone_number,
                "statistics": _empty_statistics(),
                "imported": True,
                "createdAt": now,
                "updatedAt": now,
            }
            result = await collection.insert_one(document)
            imported.append({
                "id": str(result.inserted_id),
                "name": document["name"],
                "vapiAssistantId": remote["id"],
                "phoneNumber": phone_number,
            })
        except Exception as e:
            logger.error(f"Failed to import assistant {remote.get('id')}: {e}", exc_info=True)

    logger.info(f"Imported {len(imported)} assistant(s)", extra={"user_id": str(user["_id"])})
    return {
        "message": f"Successfully imported {len(imported)} assistants",
        "imported": len(imported),
        "assistants": imported,
    }
