from typing import Any, List
from bson import ObjectId
from fastapi import Depends
from app.core.config import Settings, get_settings, settings as default_settings
from app.core.database import EventStore, bounded, get_store
from app.schemas.analytics import AggregateResult
from app.schemas.event import EventResponse
import structlog

logger = structlog.get_logger()


class QueryExecutor:
    """Runs list queries and aggregation pipelines against the event store"""

    def __init__(self, store: EventStore, config: Settings = default_settings):
        self.store = store
        self.config = config

    async def list_events(
            self,
            predicate: dict[str, Any],
            sort: list[tuple[str, int]],
            skip: int,
            take: int
    ) -> List[EventResponse]:
        """Fetch one page of events; no total count is computed"""
        logger.info("list_query_started", filters=repr(predicate), sort=sort, skip=skip, limit=take)

        cursor = self.store.events.find(
            predicate,
            sort=sort,
            skip=skip,
            limit=take,
            max_time_ms=self.config.query_timeout_ms
        )
        documents = await bounded(
            cursor.to_list(length=take),
            self.config.query_timeout_seconds,
            "fetch events"
        )

        logger.info("list_query_executed", count=len(documents))
        return [EventResponse.from_document(doc) for doc in documents]

    async def run_aggregation(self, pipeline: list[dict[str, Any]]) -> List[AggregateResult]:
        """Run a match/group/sort pipeline and decode (key, value) pairs"""
        cursor = self.store.events.aggregate(pipeline, maxTimeMS=self.config.query_timeout_ms)
        documents = await bounded(
            cursor.to_list(length=None),
            self.config.query_timeout_seconds,
            "run aggregation"
        )

        logger.info("aggregation_executed", stages=len(pipeline), groups=len(documents))
        for doc in documents:
            if isinstance(doc.get("_id"), ObjectId):
                doc["_id"] = str(doc["_id"])
        return [AggregateResult.model_validate(doc) for doc in documents]


def get_executor(
        store: EventStore = Depends(get_store),
        config: Settings = Depends(get_settings)
) -> QueryExecutor:
    return QueryExecutor(store, config)
