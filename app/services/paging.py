from pymongo import ASCENDING, DESCENDING

from app.models.event import resolve_field
from app.services.params import DEFAULT_LIMIT, DEFAULT_PAGE, SORT_DESC


def build_sort(sort_by: str, sort_order: str) -> list[tuple[str, int]]:
    """Single-key sort instruction; anything but "desc" sorts ascending"""
    direction = DESCENDING if sort_order == SORT_DESC else ASCENDING
    return [(resolve_field(sort_by), direction)]


def paginate(page: int, limit: int) -> tuple[int, int]:
    """Return (skip, take) for a 1-based page"""
    if page < DEFAULT_PAGE:
        page = DEFAULT_PAGE
    if limit < 1:
        limit = DEFAULT_LIMIT
    return (page - DEFAULT_PAGE) * limit, limit
