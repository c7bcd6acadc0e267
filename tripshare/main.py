"""
Trip Booking API - Main Application Entry Point

Booking core for a trip-sharing marketplace:
- Pending / accepted / rejected / cancelled booking lifecycle
- Per-trip seat map with conflict-free seat claims
- Commission and payout computed at booking time
- Persisted notifications with a live Redis push channel
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tripshare.core.config import get_settings
from tripshare.core.exceptions import register_exception_handlers
from tripshare.core.logging import setup_logging, get_logger
from tripshare.core.metrics import metrics_endpoint
from tripshare.api.router import api_router
from tripshare.api.middleware import RequestLoggingMiddleware
from tripshare.infrastructure.redis_client import get_redis, close_redis
from tripshare.services.cache_service import get_cache_stats

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache or live notifications")

    yield

    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Trip booking core: seat reservation, operator decisions and notifications",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)
app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_endpoint()
