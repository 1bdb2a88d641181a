# DB connections

import asyncio
from typing import Awaitable, TypeVar
from bson.errors import BSONError
from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import ASCENDING
from pymongo.errors import ConnectionFailure, ExecutionTimeout, PyMongoError
from app.core.config import Settings, settings as default_settings
from app.core.errors import QueryExecutionError, StoreUnavailableError
import structlog

logger = structlog.get_logger()

T = TypeVar("T")


class EventStore:
    """Handle to the MongoDB event collection.

    Built once at startup and shared by every request; the Motor client
    owns the connection pool and is safe for concurrent use.
    """

    def __init__(self, config: Settings = default_settings):
        self.config = config
        self.client: AsyncIOMotorClient | None = None

    async def connect(self) -> None:
        """Open the connection pool, verify it and ensure indexes"""
        if self.client is not None:
            return

        self.client = AsyncIOMotorClient(
            self.config.mongodb_url,
            maxPoolSize=self.config.mongodb_max_pool_size,
            minPoolSize=self.config.mongodb_min_pool_size,
            connectTimeoutMS=self.config.mongodb_connect_timeout_ms,
            serverSelectionTimeoutMS=self.config.mongodb_connect_timeout_ms,
            tz_aware=True,
        )
        await self.ping()

        await self.events.create_index([("created_at", ASCENDING)])
        await self.events.create_index([("updated_at", ASCENDING)])

        logger.info(
            "mongodb_connected",
            database=self.config.mongodb_database,
            collection=self.config.events_collection
        )

    async def disconnect(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None
            logger.info("mongodb_disconnected")

    async def ping(self) -> bool:
        await self._require_client().admin.command("ping")
        return True

    @property
    def events(self) -> AsyncIOMotorCollection:
        client = self._require_client()
        return client[self.config.mongodb_database][self.config.events_collection]

    def _require_client(self) -> AsyncIOMotorClient:
        if self.client is None:
            raise StoreUnavailableError("Event store unavailable", "store is not connected")
        return self.client


def get_store(request: Request) -> EventStore:
    """Dependency returning the store created in the app lifespan"""
    return request.app.state.store


async def bounded(awaitable: Awaitable[T], timeout: float, operation: str) -> T:
    """
    Await a store call under the query timeout, translating driver errors.

    Cancellation of the calling task propagates unchanged.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.error("store_call_timed_out", operation=operation, timeout_seconds=timeout)
        raise StoreUnavailableError("Query timed out", f"{operation} exceeded {timeout}s")
    except (ConnectionFailure, ExecutionTimeout) as e:
        logger.error("store_unavailable", operation=operation, error=str(e))
        raise StoreUnavailableError("Event store unavailable", str(e))
    except PyMongoError as e:
        logger.error("store_call_failed", operation=operation, error=str(e))
        raise QueryExecutionError(f"Failed to {operation}", str(e))
    except (BSONError, OverflowError) as e:
        # Values the driver cannot encode, e.g. integers above int64
        logger.error("store_call_rejected", operation=operation, error=str(e))
        raise QueryExecutionError(f"Failed to {operation}", str(e))
