from typing import Any
from fastapi import Depends
from app.core.config import Settings, get_settings, settings as default_settings
from app.core.database import EventStore, bounded, get_store
from app.models.event import new_event_document
from app.schemas.event import EventCreate, EventResponse
import structlog

logger = structlog.get_logger()


class IngestionService:
    """Service for writing new events"""

    def __init__(self, store: EventStore, config: Settings = default_settings):
        self.store = store
        self.config = config

    async def create_event(self, event: EventCreate) -> EventResponse:
        """
        Insert one event with a generated id and timestamps

        Returns:
            the stored event
        """
        document: dict[str, Any] = new_event_document(event.properties)

        result = await bounded(
            self.store.events.insert_one(document),
            self.config.query_timeout_seconds,
            "create event"
        )
        document["_id"] = result.inserted_id

        logger.info("event_created", event_id=str(result.inserted_id))
        return EventResponse.from_document(document)


def get_ingestion_service(
        store: EventStore = Depends(get_store),
        config: Settings = Depends(get_settings)
) -> IngestionService:
    return IngestionService(store, config)
