"""
In-memory stand-in for the Motor events collection.

Supports the subset of the MongoDB query and aggregation language the
service emits: exact and comparison matches on dotted paths, $group on a
field path or a $dateToString bucket with $sum/$avg accumulators, and
$sort on the group key.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any
from zoneinfo import ZoneInfo

import pytest
from pymongo.errors import OperationFailure

from app.core.config import Settings, get_settings
from app.core.database import get_store
from app.main import app
from app.models.event import new_event_document

_MISSING = object()


def get_path(document: dict, path: str) -> Any:
    value: Any = document
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _compare(actual: Any, op: str, expected: Any) -> bool:
    if op == "$in":
        return actual in expected
    if op == "$nin":
        return actual not in expected
    if op == "$ne":
        return actual != expected
    if op == "$eq":
        return actual == expected
    if actual is _MISSING or actual is None:
        return False
    try:
        if op == "$gt":
            return actual > expected
        if op == "$gte":
            return actual >= expected
        if op == "$lt":
            return actual < expected
        if op == "$lte":
            return actual <= expected
    except TypeError:
        return False
    raise OperationFailure(f"unknown operator: {op}")


def matches(document: dict, predicate: dict) -> bool:
    for field, condition in predicate.items():
        if field.startswith("$"):
            raise OperationFailure(f"unknown top level operator: {field}")
        actual = get_path(document, field)
        if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
            if not all(_compare(actual, op, expected) for op, expected in condition.items()):
                return False
        elif actual is _MISSING or actual != condition:
            return False
    return True


def format_bucket(spec: dict, document: dict) -> str:
    date = get_path(document, spec["date"].lstrip("$"))
    local = date.astimezone(ZoneInfo(spec.get("timezone", "UTC")))
    iso_year, iso_week, _ = local.isocalendar()
    fmt = spec["format"].replace("%G", f"{iso_year:04d}").replace("%V", f"{iso_week:02d}")
    return local.strftime(fmt)


def _evaluate(expression: Any, document: dict) -> Any:
    if isinstance(expression, str) and expression.startswith("$"):
        value = get_path(document, expression[1:])
        return None if value is _MISSING else value
    if isinstance(expression, dict) and "$dateToString" in expression:
        return format_bucket(expression["$dateToString"], document)
    return expression


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def group(documents: list[dict], spec: dict) -> list[dict]:
    groups: dict[Any, list[dict]] = {}
    for doc in documents:
        groups.setdefault(_evaluate(spec["_id"], doc), []).append(doc)

    results = []
    for key, members in groups.items():
        row: dict[str, Any] = {"_id": key}
        for name, accumulator in spec.items():
            if name == "_id":
                continue
            (op, operand), = accumulator.items()
            values = [_evaluate(operand, doc) for doc in members]
            numbers = [v for v in values if _is_number(v)]
            if op == "$sum":
                row[name] = sum(numbers)
            elif op == "$avg":
                row[name] = sum(numbers) / len(numbers) if numbers else None
            else:
                raise OperationFailure(f"unknown group operator: {op}")
        results.append(row)
    return results


def _sort_key(value: Any):
    # null sorts before numbers, numbers before strings
    if value is None or value is _MISSING:
        return (0, 0)
    if _is_number(value):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    return (3, value)


def sort_documents(documents: list[dict], sort: list[tuple[str, int]]) -> list[dict]:
    ordered = list(documents)
    for field, direction in reversed(sort):
        ordered.sort(key=lambda d: _sort_key(get_path(d, field)), reverse=direction < 0)
    return ordered


class FakeCursor:
    def __init__(self, results: list[dict], delay: float = 0, error: Exception | None = None):
        self.results = results
        self.delay = delay
        self.error = error

    async def to_list(self, length: int | None = None) -> list[dict]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.results if length is None else self.results[:length]


class FakeCollection:
    def __init__(self):
        self.documents: list[dict] = []
        self.delay = 0.0
        self.error: Exception | None = None
        self.calls: list[tuple[str, dict]] = []

    def find(self, filter=None, sort=None, skip=0, limit=0, **kwargs):
        self.calls.append(("find", {"filter": filter, "sort": sort, "skip": skip, "limit": limit, **kwargs}))
        if self.error is not None:
            return FakeCursor([], self.delay, self.error)
        found = [d for d in self.documents if matches(d, filter or {})]
        if sort:
            found = sort_documents(found, sort)
        found = found[skip:]
        if limit:
            found = found[:limit]
        return FakeCursor(found, self.delay)

    def aggregate(self, pipeline, **kwargs):
        self.calls.append(("aggregate", {"pipeline": pipeline, **kwargs}))
        if self.error is not None:
            return FakeCursor([], self.delay, self.error)
        rows = list(self.documents)
        for stage in pipeline:
            (name, spec), = stage.items()
            if name == "$match":
                rows = [d for d in rows if matches(d, spec)]
            elif name == "$group":
                rows = group(rows, spec)
            elif name == "$sort":
                rows = sort_documents(rows, list(spec.items()))
            else:
                raise OperationFailure(f"unsupported stage: {name}")
        return FakeCursor(rows, self.delay)

    async def insert_one(self, document):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.documents.append(document)
        return SimpleNamespace(inserted_id=document["_id"])

    def seed(self, properties: dict, created_at: datetime | None = None) -> dict:
        document = new_event_document(properties, now=created_at)
        self.documents.append(document)
        return document


class FakeStore:
    def __init__(self):
        self.events = FakeCollection()

    async def ping(self) -> bool:
        if self.events.error is not None:
            raise self.events.error
        return True


BASE_TIME = datetime(2024, 2, 1, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def seeded_store(store):
    """Three plan events one hour apart, plus one a day later"""
    store.events.seed({"plan": "pro", "value": 10}, BASE_TIME)
    store.events.seed({"plan": "pro", "value": 30}, BASE_TIME + timedelta(hours=1))
    store.events.seed({"plan": "free", "value": 5}, BASE_TIME + timedelta(hours=2))
    store.events.seed({"plan": "free", "value": 7, "region": "eu"}, BASE_TIME + timedelta(days=1))
    return store


@pytest.fixture
def test_settings():
    return Settings(query_timeout_seconds=5)


@pytest.fixture(autouse=True)
def override_dependencies(store, test_settings):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_settings] = lambda: test_settings
    yield
    app.dependency_overrides.clear()
