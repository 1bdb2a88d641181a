from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from app.core.config import Settings, get_settings
from app.schemas.event import (
    APIResponse,
    EventCreate,
    EventListData,
    EventResponse,
    QueueStatusResponse,
    ok,
)
from app.models.event import new_event_document
from app.services.analytics import QueryExecutor, get_executor
from app.services.filters import build_filter
from app.services.ingestion import IngestionService, get_ingestion_service
from app.services.paging import build_sort, paginate
from app.services.params import validate_list_params
from app.services.queue import EventQueue, get_queue
import redis
import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/events", tags=["events"])


@router.post("", response_model=APIResponse[EventResponse], response_model_exclude_unset=True,
             status_code=status.HTTP_201_CREATED)
async def create_event(
        event: EventCreate,
        service: IngestionService = Depends(get_ingestion_service),
        queue: Optional[EventQueue] = Depends(get_queue)
):
    """
    Store a single event.

    - **properties**: arbitrary non-empty JSON object

    If the queue is enabled, the event is accepted with its id assigned and
    written to the store by the queue worker.
    """
    if queue is not None:
        document = new_event_document(event.properties)
        try:
            queue.enqueue(document)
        except redis.RedisError as e:
            logger.error("event_enqueue_failed", error=str(e))
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Failed to enqueue event"
            )

        data = EventResponse.from_document(document)
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content=ok("Event accepted for processing", data.model_dump(mode="json"))
        )

    created = await service.create_event(event)
    return ok("Event created successfully", created)


@router.get("", response_model=APIResponse[EventListData], response_model_exclude_unset=True)
async def list_events(
        request: Request,
        executor: QueryExecutor = Depends(get_executor),
        config: Settings = Depends(get_settings)
):
    """
    Get a page of events with optional filtering and sorting.

    - **page**: page number (default 1)
    - **limit**: items per page, 1-1000 (default 50)
    - **sortBy**: created_at, updated_at or id (default created_at)
    - **sortOrder**: asc or desc (default asc)
    - **filters**: JSON object passed to the store as the query,
      e.g. `{"properties.plan": "pro"}`
    - any other parameter is an exact-match filter on that event property
    """
    params = validate_list_params(request.query_params, strict=config.strict_validation)
    predicate = build_filter(params.filters, request.query_params.multi_items())
    skip, take = paginate(params.page, params.limit)

    events = await executor.list_events(
        predicate,
        build_sort(params.sort_by, params.sort_order),
        skip,
        take
    )

    logger.info("events_listed", page=params.page, limit=params.limit, count=len(events))

    return ok(
        "Events retrieved successfully",
        EventListData(page=params.page, limit=params.limit, events=events)
    )


@router.get("/queue/status", response_model=QueueStatusResponse)
async def queue_status(queue: Optional[EventQueue] = Depends(get_queue)):
    """Get queue status (only available if queue is enabled)"""
    if queue is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Queue is not enabled"
        )

    return {
        "queue_size": queue.get_queue_size(),
        "dead_letter_queue_size": queue.get_dlq_size()
    }
