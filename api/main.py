"""
Food Delivery API

Backend for the ordering platform:
- Auth: local accounts, Google onboarding, sessions, profile completeness
- Deliveries: per-order delivery state machine for drivers
- Notifications: orders, driver allocation/applications, email/SMS, WebSocket push
"""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
from api import auth, deliveries, notifications
from api.models import StatsResponse
from api.state import state
from db import init_database, get_table_counts
from log import configure_logging, correlation_id
from services.errors import ServiceError

configure_logging("food-delivery-api", config.LOG_LEVEL)
logger = logging.getLogger("food-delivery-api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    logger.info("Starting Food Delivery API...")
    init_database(reset=False)
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title="Food Delivery API",
    description="Auth, delivery and notification services for the ordering platform",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    cid = request.headers.get("x-correlation-id") or str(uuid.uuid4())
    request.state.correlation_id = cid
    token = correlation_id.set(cid)
    try:
        response = await call_next(request)
    finally:
        correlation_id.reset(token)
    response.headers["X-Correlation-Id"] = cid
    return response


# =============================================================================
# Error handling
# =============================================================================

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = [
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}"
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": problems})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    # Internal details stay in the logs
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    # Runs outside the correlation-id middleware, so stamp the header here
    cid = (
        getattr(request.state, "correlation_id", None)
        or request.headers.get("x-correlation-id")
        or correlation_id.get()
    )
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"},
        headers={"X-Correlation-Id": cid},
    )


# =============================================================================
# Health & Status
# =============================================================================

@app.get("/", tags=["Health"])
async def root():
    return {"status": "ok", "service": "food-delivery-api"}


@app.get("/stats", response_model=StatsResponse, tags=["Health"])
async def get_stats():
    """Get current database statistics."""
    counts = get_table_counts()
    return StatsResponse(**counts, connected_users=len(state.connections.connected_users))


app.include_router(auth.router)
app.include_router(deliveries.router)
app.include_router(notifications.router)
