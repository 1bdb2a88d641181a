from typing import Any, Iterable
from bson import ObjectId

from app.models.event import ID_FIELD, resolve_field
from app.services.params import RESERVED_PARAMS


def _match_value(field: str, value: str) -> Any:
    if field == ID_FIELD and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def build_flat_filter(query_items: Iterable[tuple[str, str]]) -> dict[str, Any]:
    """
    Turn unreserved query parameters into exact-match clauses.

    A parameter given more than once matches any of its values.
    """
    grouped: dict[str, list[Any]] = {}
    for key, value in query_items:
        if key in RESERVED_PARAMS:
            continue
        field = resolve_field(key)
        grouped.setdefault(field, []).append(_match_value(field, value))

    predicate: dict[str, Any] = {}
    for field, values in grouped.items():
        predicate[field] = values[0] if len(values) == 1 else {"$in": values}
    return predicate


def build_filter(
        structured: dict[str, Any] | None,
        query_items: Iterable[tuple[str, str]]
) -> dict[str, Any]:
    """Structured filters win outright; otherwise fall back to flat filters"""
    if structured is not None:
        return structured
    return build_flat_filter(query_items)
