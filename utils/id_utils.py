"""
utils/id_utils.py

Purpose: ObjectId helpers

- Parsing ids from path and body parameters
- Matching foreign keys stored by older data-entry paths, where a user id
  may appear as an ObjectId, its hex string, or {"$oid": hex}
"""

from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId


def to_object_id(value: Any) -> Optional[ObjectId]:
    """
    Returns an ObjectId for any of the three stored representations,
    or None when the value is not a valid id.
    """
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, dict) and "$oid" in value:
        return to_object_id(value["$oid"])
    if isinstance(value, str):
        try:
            return ObjectId(value.strip())
        except (InvalidId, TypeError):
            return None
    return None


def owner_id_query(field: str, owner_id: ObjectId) -> Dict[str, Any]:
    """
    Builds a filter matching `field` in all three representations.
    """
    hex_id = str(owner_id)
    return {
        "$or": [
            {field: owner_id},
            {field: hex_id},
            {f"{field}.$oid": hex_id},
        ]
    }


def owner_id_matches(value: Any, owner_id: ObjectId) -> bool:
    """In-process counterpart of owner_id_query."""
    return value is not None and to_object_id(value) == owner_id

