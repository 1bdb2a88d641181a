"""
Queue Worker - Moves queued events from Redis into MongoDB

Usage:
    python scripts/queue_worker.py
"""
import sys
import time
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from bson.errors import BSONError
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import BulkWriteError, PyMongoError
from app.core.config import settings
from app.services.queue import EventQueue, deserialize_document
import structlog

logger = structlog.get_logger()

DUPLICATE_KEY_ERROR = 11000


def process_events_batch(queue: EventQueue, collection: Collection, messages: list) -> dict:
    """Insert a batch of queued events, re-queueing the ones that fail"""
    if not messages:
        return {"inserted": 0, "failed": 0}

    # (message, document) pairs for messages that parsed
    built = []
    failed = 0

    for message in messages:
        try:
            built.append((message, deserialize_document(message)))
        except (KeyError, TypeError, ValueError, BSONError) as e:
            logger.error("event_parse_failed", event_id=message.get("_id"), error=str(e))
            queue.requeue(message)
            failed += 1

    if not built:
        return {"inserted": 0, "failed": failed}

    try:
        result = collection.insert_many([document for _, document in built], ordered=False)
        inserted = len(result.inserted_ids)
    except BulkWriteError as e:
        inserted = e.details.get("nInserted", 0)
        write_errors = e.details.get("writeErrors", [])
        # Duplicate ids come from re-delivered messages and are already stored
        retryable = [err for err in write_errors if err.get("code") != DUPLICATE_KEY_ERROR]
        for err in retryable:
            queue.requeue(built[err["index"]][0])
        failed += len(retryable)
        logger.warning(
            "batch_partially_inserted",
            inserted=inserted,
            duplicates=len(write_errors) - len(retryable),
            requeued=len(retryable)
        )
    except PyMongoError as e:
        logger.error("batch_processing_failed", error=str(e))
        for message, _ in built:
            queue.requeue(message)
        return {"inserted": 0, "failed": failed + len(built)}

    logger.info("batch_processed", total=len(messages), inserted=inserted, failed=failed)
    return {"inserted": inserted, "failed": failed}


def main():
    """Main worker loop"""
    queue = EventQueue(settings.redis_url)
    client = MongoClient(settings.mongodb_url, tz_aware=True)
    collection = client[settings.mongodb_database][settings.events_collection]

    logger.info("worker_started", queue=queue.queue_name)

    print("Queue Worker started. Press Ctrl+C to stop.")

    try:
        while True:
            # Dequeue batch of events
            messages = queue.dequeue(batch_size=100, timeout=5)

            if messages:
                result = process_events_batch(queue, collection, messages)
                print(f"Processed batch: {result['inserted']} inserted, {result['failed']} failed")
            else:
                # No events, wait a bit
                time.sleep(1)

    except KeyboardInterrupt:
        logger.info("worker_stopped")
        print("\nWorker stopped.")
    finally:
        queue.close()
        client.close()


if __name__ == "__main__":
    main()
