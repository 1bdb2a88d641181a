from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import structlog
import time

from app.core.config import settings
from app.core.database import EventStore, bounded, get_store
from app.core.errors import AppError, register_error_handlers
from app.api import events, stats
from app.services.queue import EventQueue

# Configure structured logging
structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
    ]
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle events"""
    logger.info("application_startup", app_name=settings.app_name)

    store = EventStore(settings)
    await store.connect()
    app.state.store = store

    app.state.queue = EventQueue(settings.redis_url) if settings.use_queue else None

    yield

    if app.state.queue is not None:
        app.state.queue.close()
    await store.disconnect()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan
)

register_error_handlers(app)


# Middleware for logging requests
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    response = await call_next(request)

    duration = time.time() - start_time
    logger.info(
        "request_completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(duration * 1000, 2)
    )

    return response


# Include routers
app.include_router(stats.router)
app.include_router(events.router)


@app.get("/health")
async def health_check(store: EventStore = Depends(get_store)):
    """Health check endpoint"""
    try:
        await bounded(store.ping(), settings.query_timeout_seconds, "ping store")
    except AppError as e:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "app": settings.app_name, "error": str(e)}
        )
    return {"status": "healthy", "app": settings.app_name}


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Event Query API",
        "endpoints": {
            "health": "/health",
            "events": "/events",
            "stats": "/events/stats",
            "timeseries": "/events/timeseries",
            "docs": "/docs"
        }
    }
