"""
app/api/assistants.py

Purpose: Dashboard assistant endpoints

- List with call statistics, create, update, delete
- Import assistants that exist only in Vapi
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, status

from app.api.deps import get_current_user
from app.schemas.assistant import AssistantCreate, AssistantUpdate
from app.services import assistant_service

router = APIRouter()


@router.get("/assistants")
async def list_assistants(user: Dict[str, Any] = Depends(get_current_user)):
    return await assistant_service.list_assistants(user)


@router.post("/assistants", status_code=status.HTTP_201_CREATED)
async def create_assistant(body: AssistantCreate, user: Dict[str, Any] = Depends(get_current_user)):
    return await assistant_service.create_assistant(
        user,
        name=body.name,
        assistant_type=body.type,
        description=body.description,
        configuration=body.configuration,
        create_phone_number=body.createPhoneNumber,
    )


@router.post("/assistants/import")
async def import_assistants(user: Dict[str, Any] = Depends(get_current_user)):
    return await assistant_service.import_assistants(user)


@router.patch("/assistants/{assistant_id}")
async def update_assistant(
    assistant_id: str,
    body: AssistantUpdate,
    user: Dict[str, Any] = Depends(get_current_user),
):
    assistant = await assistant_service.update_assistant(user, assistant_id, body.model_dump(exclude_unset=True))
    return {"message": "Assistant updated successfully", "assistant": assistant}


@router.delete("/assistants/{assistant_id}")
async def delete_assistant(assistant_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    await assistant_service.delete_assistant(user, assistant_id)
    return {"message": "Assistant deleted successfully"}
