"""
Query parameter validation.

Raw query strings are parsed and bound-checked into typed intent records.
With strict validation (the default) out-of-range or unknown values raise
BadRequestError; in lenient mode they fall back to their defaults. Absent
parameters always take the default. The sort field allow-list and the
filters JSON check are enforced in both modes.
"""

from dataclasses import dataclass
from typing import Any, Mapping
import json
import re

from app.core.errors import BadRequestError

# Optional minus sign and ASCII digits; no "+", "_" or whitespace
_INTEGER = re.compile(r"-?[0-9]+")

PARAM_PAGE = "page"
PARAM_LIMIT = "limit"
PARAM_SORT_BY = "sortBy"
PARAM_SORT_ORDER = "sortOrder"
PARAM_GROUP_BY = "groupBy"
PARAM_AGGREGATES = "aggregates"
PARAM_INTERVAL = "interval"
PARAM_FILTERS = "filters"

RESERVED_PARAMS = frozenset({
    PARAM_PAGE,
    PARAM_LIMIT,
    PARAM_SORT_BY,
    PARAM_SORT_ORDER,
    PARAM_GROUP_BY,
    PARAM_AGGREGATES,
    PARAM_INTERVAL,
    PARAM_FILTERS,
})

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 50
MAX_LIMIT = 1000

SORT_ASC = "asc"
SORT_DESC = "desc"
DEFAULT_SORT_BY = "created_at"
DEFAULT_SORT_ORDER = SORT_ASC
SORT_FIELDS = ("created_at", "updated_at", "id")

AGGREGATE_COUNT = "count"
AGGREGATE_SUM = "sum"
AGGREGATE_AVG = "avg"
AGGREGATES = (AGGREGATE_COUNT, AGGREGATE_SUM, AGGREGATE_AVG)
DEFAULT_AGGREGATES = AGGREGATE_COUNT

INTERVALS = ("hour", "day", "week", "month")
DEFAULT_INTERVAL = "day"


@dataclass(frozen=True)
class ListParams:
    page: int
    limit: int
    sort_by: str
    sort_order: str
    filters: dict[str, Any] | None


@dataclass(frozen=True)
class StatsParams:
    group_by: str
    aggregates: str
    filters: dict[str, Any] | None


@dataclass(frozen=True)
class TimeSeriesParams:
    interval: str
    aggregates: str
    filters: dict[str, Any] | None


def _present(params: Mapping[str, str], name: str) -> str | None:
    value = params.get(name)
    if value is None or value.strip() == "":
        return None
    return value.strip()


def _parse_int(raw: str) -> int:
    if not _INTEGER.fullmatch(raw):
        raise ValueError(f"invalid integer: {raw!r}")
    return int(raw)


def parse_page(raw: str | None, strict: bool = True) -> int:
    if raw is None:
        return DEFAULT_PAGE
    try:
        page = _parse_int(raw)
    except ValueError:
        if strict:
            raise BadRequestError("Invalid page parameter", f"'{raw}' is not an integer")
        return DEFAULT_PAGE
    if page < 1:
        if strict:
            raise BadRequestError("Page must be a positive number")
        return DEFAULT_PAGE
    return page


def parse_limit(raw: str | None, strict: bool = True) -> int:
    if raw is None:
        return DEFAULT_LIMIT
    try:
        limit = _parse_int(raw)
    except ValueError:
        if strict:
            raise BadRequestError("Invalid limit parameter", f"'{raw}' is not an integer")
        return DEFAULT_LIMIT
    if limit < 1 or limit > MAX_LIMIT:
        if strict:
            raise BadRequestError(f"Limit must be between 1 and {MAX_LIMIT}")
        return DEFAULT_LIMIT
    return limit


def parse_sort_by(raw: str | None) -> str:
    # Only allow-listed fields ever reach the store's sort clause
    if raw is None:
        return DEFAULT_SORT_BY
    if raw not in SORT_FIELDS:
        raise BadRequestError("Invalid sort field", f"sortBy must be one of {', '.join(SORT_FIELDS)}")
    return raw


def parse_sort_order(raw: str | None, strict: bool = True) -> str:
    if raw is None:
        return DEFAULT_SORT_ORDER
    if raw not in (SORT_ASC, SORT_DESC):
        if strict:
            raise BadRequestError("Sort order must be 'asc' or 'desc'")
        return DEFAULT_SORT_ORDER
    return raw


def parse_group_by(raw: str | None) -> str:
    if raw is None:
        raise BadRequestError("groupBy parameter is required")
    return raw


def parse_aggregates(raw: str | None, strict: bool = True) -> str:
    if raw is None:
        return DEFAULT_AGGREGATES
    if raw not in AGGREGATES:
        if strict:
            raise BadRequestError("Invalid aggregation type", f"aggregates must be one of {', '.join(AGGREGATES)}")
        return DEFAULT_AGGREGATES
    return raw


def parse_interval(raw: str | None, strict: bool = True) -> str:
    if raw is None:
        return DEFAULT_INTERVAL
    if raw not in INTERVALS:
        if strict:
            raise BadRequestError("Invalid time interval", f"interval must be one of {', '.join(INTERVALS)}")
        return DEFAULT_INTERVAL
    return raw


def parse_filters(raw: str | None) -> dict[str, Any] | None:
    """Parse the structured filters parameter; only syntax is checked"""
    if raw is None:
        return None
    try:
        filters = json.loads(raw)
    except json.JSONDecodeError as e:
        raise BadRequestError("Invalid filters parameter", f"invalid filters JSON: {e.msg}")
    if not isinstance(filters, dict):
        raise BadRequestError("Invalid filters parameter", "filters must be a JSON object")
    return filters


def validate_list_params(params: Mapping[str, str], strict: bool = True) -> ListParams:
    return ListParams(
        page=parse_page(_present(params, PARAM_PAGE), strict),
        limit=parse_limit(_present(params, PARAM_LIMIT), strict),
        sort_by=parse_sort_by(_present(params, PARAM_SORT_BY)),
        sort_order=parse_sort_order(_present(params, PARAM_SORT_ORDER), strict),
        filters=parse_filters(_present(params, PARAM_FILTERS)),
    )


def validate_stats_params(params: Mapping[str, str], strict: bool = True) -> StatsParams:
    return StatsParams(
        group_by=parse_group_by(_present(params, PARAM_GROUP_BY)),
        aggregates=parse_aggregates(_present(params, PARAM_AGGREGATES), strict),
        filters=parse_filters(_present(params, PARAM_FILTERS)),
    )


def validate_time_series_params(params: Mapping[str, str], strict: bool = True) -> TimeSeriesParams:
    return TimeSeriesParams(
        interval=parse_interval(_present(params, PARAM_INTERVAL), strict),
        aggregates=parse_aggregates(_present(params, PARAM_AGGREGATES), strict),
        filters=parse_filters(_present(params, PARAM_FILTERS)),
    )
