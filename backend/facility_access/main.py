"""
Facility Admission API - Main Application Entry Point

Check-in engine for shared facilities (pool sessions, open gym):
- Entrance token routing to exactly one facility
- Ordered admission checks: slot, eligibility, entitlement, duplicate, capacity
- Race-free capacity and duplicate enforcement in one transaction
- Per-session waitlists with gap-free positions
- Structured logging, Prometheus metrics, fail-soft Redis cache and pub/sub
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from facility_access.api.middleware import RequestLoggingMiddleware
from facility_access.api.router import api_router
from facility_access.core.config import get_settings
from facility_access.core.exceptions import TransientStorageFailure
from facility_access.core.logging import get_logger, setup_logging
from facility_access.core.metrics import metrics_endpoint
from facility_access.infrastructure.redis_client import close_redis, get_redis

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        timezone=settings.FACILITY_TIMEZONE,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without catalog cache and notifications")

    yield

    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Check-in and waitlist API for capacity-limited shared facilities",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


@app.exception_handler(TransientStorageFailure)
async def storage_failure_handler(request: Request, exc: TransientStorageFailure):
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "detail": {
                "reason": "storage-unavailable",
                "message": "Check-in is temporarily unavailable. Please try again.",
            }
        },
        headers={"Retry-After": "1"},
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    redis_client = await get_redis()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "redis": "connected" if redis_client else "unavailable",
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
