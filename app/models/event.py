# MongoDB document model

from datetime import datetime, timezone
from typing import Any
from bson import ObjectId

# Top-level document fields; everything else lives under "properties"
ID_FIELD = "_id"
PROPERTIES_FIELD = "properties"
CREATED_AT_FIELD = "created_at"
UPDATED_AT_FIELD = "updated_at"

TOP_LEVEL_FIELDS = frozenset({ID_FIELD, PROPERTIES_FIELD, CREATED_AT_FIELD, UPDATED_AT_FIELD})

# Numeric property targeted by sum/avg aggregates
VALUE_FIELD = f"{PROPERTIES_FIELD}.value"


def new_event_document(properties: dict[str, Any], now: datetime | None = None) -> dict[str, Any]:
    """Build a fresh event document with generated id and timestamps"""
    now = now or datetime.now(timezone.utc)
    return {
        ID_FIELD: ObjectId(),
        PROPERTIES_FIELD: properties,
        CREATED_AT_FIELD: now,
        UPDATED_AT_FIELD: now,
    }


def validate_property_keys(properties: dict[str, Any]) -> None:
    """Reject property names that cannot be addressed as field paths"""
    for key in properties:
        if not key.strip():
            raise ValueError('Property names cannot be empty or whitespace')
        if key.startswith('$') or '.' in key:
            raise ValueError(f"Property name '{key}' cannot start with '$' or contain '.'")


def resolve_field(name: str) -> str:
    """
    Map a user-facing field name onto its document path.

    "id" is the public name of "_id"; other names that are not top-level
    event fields are event properties.
    """
    if name == "id":
        return ID_FIELD
    if name in TOP_LEVEL_FIELDS or name.startswith(f"{PROPERTIES_FIELD}."):
        return name
    return f"{PROPERTIES_FIELD}.{name}"
