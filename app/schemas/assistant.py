"""
app/schemas/assistant.py

Purpose: Assistant request bodies
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class AssistantCreate(BaseModel):
    # name and type are required; checked by the service (400)
    name: Optional[str] = None
    type: Optional[str] = Field(None, description="e.g. customer_service, sales, appointment")
    description: Optional[str] = None
    configuration: Optional[Dict[str, Any]] = None
    createPhoneNumber: bool = True

    model_config = {
        "json_schema_extra": {
            "example": {
                "name": "Front Desk",
                "type": "customer_service",
                "description": "Answers opening hours and books appointments",
                "configuration": {"voice": "alloy"},
            }
        }
    }


class AssistantUpdate(BaseModel):
    status: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    configuration: Optional[Dict[str, Any]] = None
