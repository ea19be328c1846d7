# backend/bookingcore/main.py
from __future__ import annotations

from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator, Dict

from fastapi import APIRouter, FastAPI, Request, Response

from .core.config import settings
from .core.request_context import configure_logging, reset_request_id, set_request_id
from .core.ulid_helper import generate_ulid
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes.v1 import (
    activities as activities_v1,
    bookings as bookings_v1,
    payments as payments_v1,
    sessions as sessions_v1,
)

logger = logging.getLogger(__name__)

API_TITLE = "Booking Core API"
API_VERSION = "1.0.0"
REQUEST_ID_HEADER = "X-Request-ID"


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    configure_logging()
    logger.info(f"{API_TITLE} starting up...")
    logger.info(f"Environment: {settings.environment}")
    yield
    logger.info(f"{API_TITLE} shutting down...")


app = FastAPI(
    title=API_TITLE,
    version=API_VERSION,
    lifespan=app_lifespan,
)


@app.middleware("http")
async def attach_request_id(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Propagate or mint a request id so every log line of a request can be correlated."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or generate_ulid()
    token = set_request_id(request_id)
    try:
        response = await call_next(request)
    finally:
        reset_request_id(token)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


# API v1 - everything versioned lives under /api/v1
api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(activities_v1.router, prefix="/activities")
api_v1.include_router(sessions_v1.router)
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(payments_v1.router, prefix="/payments")
app.include_router(api_v1)


@app.get("/health", include_in_schema=False)
def health_check() -> Dict[str, str]:
    return {"status": "healthy", "environment": settings.environment}


@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    payload, content_type = prometheus_metrics.export()
    return Response(content=payload, media_type=content_type)
