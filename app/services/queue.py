import json
import redis
from datetime import datetime
from typing import Any, List, Optional
from bson import ObjectId
from fastapi import Request
import structlog

logger = structlog.get_logger()

QUEUE_NAME = "event_queue"
DEAD_LETTER_QUEUE = "event_dlq"
MAX_RETRIES = 3


def serialize_document(document: dict[str, Any], retry_count: int = 0) -> str:
    return json.dumps({
        "_id": str(document["_id"]),
        "properties": document["properties"],
        "created_at": document["created_at"].isoformat(),
        "updated_at": document["updated_at"].isoformat(),
        "retry_count": retry_count
    })


def deserialize_document(message: dict[str, Any]) -> dict[str, Any]:
    """Rebuild an insertable event document from a queue message"""
    return {
        "_id": ObjectId(message["_id"]),
        "properties": message["properties"],
        "created_at": datetime.fromisoformat(message["created_at"]),
        "updated_at": datetime.fromisoformat(message["updated_at"]),
    }


class EventQueue:
    """Redis-based event queue"""

    def __init__(self, redis_url: str, client: Optional[redis.Redis] = None):
        try:
            self.redis_client = client or redis.from_url(redis_url, decode_responses=True)
            # Test connection
            self.redis_client.ping()
            self.queue_name = QUEUE_NAME
            self.dead_letter_queue = DEAD_LETTER_QUEUE
            self.max_retries = MAX_RETRIES
            logger.info("event_queue_initialized", redis_url=redis_url)
        except redis.RedisError as e:
            logger.error("event_queue_init_failed", error=str(e), redis_url=redis_url)
            raise

    def enqueue(self, document: dict[str, Any]) -> None:
        """Add an event document to the queue"""
        try:
            self.redis_client.rpush(self.queue_name, serialize_document(document))
            logger.info("event_enqueued", event_id=str(document["_id"]))
        except redis.RedisError as e:
            logger.error("enqueue_failed", error=str(e))
            raise

    def requeue(self, message: dict[str, Any]) -> None:
        """Put a failed message back, or dead-letter it after too many retries"""
        message["retry_count"] = message.get("retry_count", 0) + 1
        if message["retry_count"] >= self.max_retries:
            self.send_to_dlq(message)
        else:
            self.redis_client.rpush(self.queue_name, json.dumps(message))

    def dequeue(self, batch_size: int = 100, timeout: int = 5) -> List[dict]:
        """Get messages from the queue"""
        messages = []

        try:
            for _ in range(batch_size):
                result = self.redis_client.blpop(self.queue_name, timeout=timeout)

                if result is None:
                    break

                _, raw = result
                try:
                    messages.append(json.loads(raw))
                except json.JSONDecodeError as e:
                    logger.error("message_decode_failed", error=str(e))
                    self.redis_client.rpush(self.dead_letter_queue, raw)

            return messages

        except redis.RedisError as e:
            logger.error("dequeue_failed", error=str(e))
            return messages

    def send_to_dlq(self, message: dict):
        """Send failed message to dead letter queue"""
        try:
            self.redis_client.rpush(self.dead_letter_queue, json.dumps(message))
            logger.warning("event_sent_to_dlq", event_id=message.get("_id"))
        except redis.RedisError as e:
            logger.error("dlq_failed", error=str(e))

    def get_queue_size(self) -> int:
        """Get current queue size"""
        return self.redis_client.llen(self.queue_name)

    def get_dlq_size(self) -> int:
        """Get dead letter queue size"""
        return self.redis_client.llen(self.dead_letter_queue)

    def close(self) -> None:
        self.redis_client.close()


def get_queue(request: Request) -> Optional[EventQueue]:
    """Dependency returning the queue, or None when queued ingestion is off"""
    return getattr(request.app.state, "queue", None)
