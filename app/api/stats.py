# GET /events/stats, GET /events/timeseries

from fastapi import APIRouter, Depends, Request
from app.core.config import Settings, get_settings
from app.core.errors import AppError
from app.schemas.analytics import StatsData, TimeSeriesData
from app.schemas.event import APIResponse, ok
from app.services.analytics import QueryExecutor, get_executor
from app.services.filters import build_filter
from app.services.params import validate_stats_params, validate_time_series_params
from app.services.planner import build_group_pipeline, build_time_series_pipeline
import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/events", tags=["analytics"])


@router.get("/stats", response_model=APIResponse[StatsData], response_model_exclude_unset=True)
async def get_stats(
        request: Request,
        executor: QueryExecutor = Depends(get_executor),
        config: Settings = Depends(get_settings)
):
    """
    Aggregate events grouped by one field.

    - **groupBy**: event property to group by (required)
    - **aggregates**: count, sum or avg of the `value` property (default count)
    - **filters**: JSON object passed to the store as the match stage
    - any other parameter is an exact-match filter on that event property

    Groups are returned sorted ascending by key.
    """
    params = validate_stats_params(request.query_params, strict=config.strict_validation)
    predicate = build_filter(params.filters, request.query_params.multi_items())

    try:
        stats = await executor.run_aggregation(
            build_group_pipeline(predicate, params.group_by, params.aggregates)
        )
    except AppError as e:
        logger.error("stats_query_failed", group_by=params.group_by, error=str(e))
        raise

    logger.info("stats_query_executed", group_by=params.group_by, aggregates=params.aggregates)
    return ok(
        "Stats retrieved successfully",
        StatsData(group_by=params.group_by, aggregates=params.aggregates, stats=stats)
    )


@router.get("/timeseries", response_model=APIResponse[TimeSeriesData], response_model_exclude_unset=True)
async def get_time_series(
        request: Request,
        executor: QueryExecutor = Depends(get_executor),
        config: Settings = Depends(get_settings)
):
    """
    Aggregate events into calendar buckets of their creation time.

    - **interval**: hour, day, week (ISO week) or month (default day)
    - **aggregates**: count, sum or avg of the `value` property (default count)
    - **filters**: JSON object passed to the store as the match stage
    - any other parameter is an exact-match filter on that event property

    Buckets are labelled `YYYY-MM-DDTHH`, `YYYY-MM-DD`, `GGGG-Www` or
    `YYYY-MM` and returned in chronological order.
    """
    params = validate_time_series_params(request.query_params, strict=config.strict_validation)
    predicate = build_filter(params.filters, request.query_params.multi_items())

    try:
        time_series = await executor.run_aggregation(
            build_time_series_pipeline(
                predicate,
                params.interval,
                params.aggregates,
                timezone=config.bucket_timezone
            )
        )
    except AppError as e:
        logger.error("timeseries_query_failed", interval=params.interval, error=str(e))
        raise

    logger.info("timeseries_query_executed", interval=params.interval, aggregates=params.aggregates)
    return ok(
        "Time series retrieved successfully",
        TimeSeriesData(interval=params.interval, aggregates=params.aggregates, time_series=time_series)
    )
