import json
from types import SimpleNamespace

import pytest
from pymongo.errors import AutoReconnect, BulkWriteError

from app.models.event import new_event_document
from app.services.queue import DEAD_LETTER_QUEUE, MAX_RETRIES, QUEUE_NAME, EventQueue, serialize_document
from scripts.queue_worker import process_events_batch


class FakeRedis:
    """Just enough of a Redis client for list-backed queues"""

    def __init__(self):
        self.lists: dict[str, list[str]] = {}

    def ping(self):
        return True

    def rpush(self, name, value):
        self.lists.setdefault(name, []).append(value)

    def blpop(self, name, timeout=0):
        items = self.lists.get(name)
        if not items:
            return None
        return name, items.pop(0)

    def llen(self, name):
        return len(self.lists.get(name, []))

    def close(self):
        pass

    def pop_all(self, name):
        return [json.loads(raw) for raw in self.lists.pop(name, [])]


class FakeCollection:
    def __init__(self, error=None):
        self.documents = []
        self.error = error

    def insert_many(self, documents, ordered=True):
        if self.error is not None:
            raise self.error
        self.documents.extend(documents)
        return SimpleNamespace(inserted_ids=[d["_id"] for d in documents])


@pytest.fixture
def redis_client():
    return FakeRedis()


@pytest.fixture
def queue(redis_client):
    return EventQueue("redis://unused", client=redis_client)


def make_message(**properties):
    return json.loads(serialize_document(new_event_document(properties or {"plan": "pro"})))


def malformed_message():
    message = make_message()
    message["_id"] = "bad"
    return message


def test_batch_inserts_parsed_events(queue, redis_client):
    collection = FakeCollection()
    messages = [make_message(value=1), make_message(value=2)]

    result = process_events_batch(queue, collection, messages)

    assert result == {"inserted": 2, "failed": 0}
    assert [str(d["_id"]) for d in collection.documents] == [m["_id"] for m in messages]
    assert redis_client.llen(QUEUE_NAME) == 0


def test_invalid_id_does_not_stop_the_batch(queue, redis_client):
    collection = FakeCollection()
    good = make_message()

    result = process_events_batch(queue, collection, [malformed_message(), good])

    assert result == {"inserted": 1, "failed": 1}
    assert [str(d["_id"]) for d in collection.documents] == [good["_id"]]
    requeued = redis_client.pop_all(QUEUE_NAME)
    assert [(m["_id"], m["retry_count"]) for m in requeued] == [("bad", 1)]


def test_insert_failure_requeues_each_message_once(queue, redis_client):
    collection = FakeCollection(error=AutoReconnect("connection reset"))
    good = make_message()

    result = process_events_batch(queue, collection, [malformed_message(), good])

    assert result == {"inserted": 0, "failed": 2}
    requeued = redis_client.pop_all(QUEUE_NAME)
    assert sorted((m["_id"], m["retry_count"]) for m in requeued) == sorted([("bad", 1), (good["_id"], 1)])


def test_bulk_write_errors_requeue_all_but_duplicates(queue, redis_client):
    messages = [make_message(value=i) for i in range(3)]
    # Indexes refer to the documents sent, which skip the malformed message
    collection = FakeCollection(error=BulkWriteError({
        "nInserted": 1,
        "writeErrors": [
            {"index": 0, "code": 11000, "errmsg": "E11000 duplicate key error"},
            {"index": 2, "code": 121, "errmsg": "Document failed validation"},
        ],
    }))

    result = process_events_batch(queue, collection, [malformed_message()] + messages)

    assert result == {"inserted": 1, "failed": 2}
    requeued = redis_client.pop_all(QUEUE_NAME)
    assert [m["_id"] for m in requeued] == ["bad", messages[2]["_id"]]


def test_requeue_dead_letters_after_max_retries(queue, redis_client):
    message = make_message()

    for attempt in range(1, MAX_RETRIES):
        queue.requeue(message)
        assert message["retry_count"] == attempt
        assert queue.get_queue_size() == attempt
        assert queue.get_dlq_size() == 0

    queue.requeue(message)

    assert queue.get_dlq_size() == 1
    assert queue.get_queue_size() == MAX_RETRIES - 1
    dead = redis_client.pop_all(DEAD_LETTER_QUEUE)
    assert dead[0]["_id"] == message["_id"]
    assert dead[0]["retry_count"] == MAX_RETRIES


def test_send_to_dlq(queue, redis_client):
    message = make_message(plan="team")

    queue.send_to_dlq(message)

    assert redis_client.pop_all(DEAD_LETTER_QUEUE) == [message]


def test_dequeue_dead_letters_undecodable_entries(queue, redis_client):
    document = new_event_document({"plan": "pro", "value": 1})
    queue.enqueue(document)
    redis_client.rpush(QUEUE_NAME, "{not json")
    second = make_message(value=2)
    redis_client.rpush(QUEUE_NAME, json.dumps(second))

    messages = queue.dequeue(batch_size=10, timeout=0)

    assert [m["_id"] for m in messages] == [str(document["_id"]), second["_id"]]
    assert messages[0]["retry_count"] == 0
    assert redis_client.lists[DEAD_LETTER_QUEUE] == ["{not json"]
    assert queue.get_queue_size() == 0
