# Pydantic schemas

from pydantic import BaseModel, Field, JsonValue, field_validator
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar
from app.models.event import validate_property_keys

T = TypeVar("T")


class EventCreate(BaseModel):
    """Schema for creating a single event"""

    properties: dict[str, JsonValue] = Field(..., min_length=1)

    @field_validator('properties')
    @classmethod
    def validate_keys(cls, v: dict[str, JsonValue]) -> dict[str, JsonValue]:
        validate_property_keys(v)
        return v


class EventResponse(BaseModel):
    """A stored event"""

    id: str
    properties: dict[str, JsonValue]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "EventResponse":
        return cls(
            id=str(doc["_id"]),
            properties=doc.get("properties") or {},
            created_at=doc["created_at"],
            updated_at=doc.get("updated_at", doc["created_at"]),
        )


class EventListData(BaseModel):
    """One page of events"""

    page: int
    limit: int
    events: list[EventResponse]


class QueueStatusResponse(BaseModel):
    queue_size: int
    dead_letter_queue_size: int


class APIResponse(BaseModel, Generic[T]):
    """Envelope shared by every endpoint"""

    success: bool
    message: str
    data: Optional[T] = None
    error: Optional[str] = None


def ok(message: str, data: Any = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return body
