"""
Aggregation pipelines for the stats and time-series endpoints.

Both plans share the same shape: an optional $match on the filter predicate,
a $group keyed either on an event field or on the creation timestamp
formatted to a calendar bucket, then a $sort on the group key so results
come back in a stable order.
"""

from typing import Any

from app.models.event import CREATED_AT_FIELD, VALUE_FIELD, resolve_field
from app.services.params import AGGREGATE_AVG, AGGREGATE_COUNT, AGGREGATE_SUM, DEFAULT_INTERVAL

# $dateToString formats. Each sorts lexicographically in chronological order;
# weeks use the ISO week-numbering year so late December/early January days
# land in the right week.
BUCKET_FORMATS = {
    "hour": "%Y-%m-%dT%H",
    "day": "%Y-%m-%d",
    "week": "%G-W%V",
    "month": "%Y-%m",
}


def aggregate_expression(aggregates: str) -> dict[str, Any]:
    """Accumulator for the value of each group; unknown kinds count"""
    if aggregates == AGGREGATE_SUM:
        return {"$sum": f"${VALUE_FIELD}"}
    if aggregates == AGGREGATE_AVG:
        return {"$avg": f"${VALUE_FIELD}"}
    return {"$sum": 1}


def bucket_expression(interval: str, timezone: str = "UTC") -> dict[str, Any]:
    return {
        "$dateToString": {
            "format": BUCKET_FORMATS.get(interval, BUCKET_FORMATS[DEFAULT_INTERVAL]),
            "date": f"${CREATED_AT_FIELD}",
            "timezone": timezone,
        }
    }


def _pipeline(predicate: dict[str, Any], group_key: Any, aggregates: str) -> list[dict[str, Any]]:
    pipeline: list[dict[str, Any]] = []
    if predicate:
        pipeline.append({"$match": predicate})
    pipeline.append({"$group": {"_id": group_key, "value": aggregate_expression(aggregates)}})
    pipeline.append({"$sort": {"_id": 1}})
    return pipeline


def build_group_pipeline(
        predicate: dict[str, Any],
        group_by: str,
        aggregates: str = AGGREGATE_COUNT
) -> list[dict[str, Any]]:
    if not group_by:
        raise ValueError("group_by is required")
    return _pipeline(predicate, f"${resolve_field(group_by)}", aggregates)


def build_time_series_pipeline(
        predicate: dict[str, Any],
        interval: str = DEFAULT_INTERVAL,
        aggregates: str = AGGREGATE_COUNT,
        timezone: str = "UTC"
) -> list[dict[str, Any]]:
    return _pipeline(predicate, bucket_expression(interval, timezone), aggregates)
