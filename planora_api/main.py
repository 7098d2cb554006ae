"""Planora account-lifecycle API."""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded

from planora_api.config import settings, validate_secret_key
from planora_api.database import close_database
from planora_api.logging_config import get_logger, setup_logging
from planora_api.middleware import (
    CorrelationIdMiddleware,
    limiter,
    rate_limit_exceeded_handler,
)
from planora_api.routers import account_purge, health, signup
from planora_api.services.scheduler import start_scheduler, stop_scheduler

setup_logging(
    log_format=settings.log_format,
    log_level=settings.log_level,
    service_name=settings.service_name,
)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    # Note: migrations run via `python -m planora_api.core.migrations` before uvicorn
    validate_secret_key()
    logger.info("Planora API started")

    start_scheduler()

    yield

    # Shutdown
    logger.info("Shutting down Planora API...")
    stop_scheduler()
    await close_database()
    logger.info("Planora API shutdown complete")


app = FastAPI(
    title="Planora API",
    description="Account lifecycle API: verified signup and scheduled account purge",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

app.add_middleware(CorrelationIdMiddleware)

app.include_router(health.router)
app.include_router(signup.router)
app.include_router(account_purge.router)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint."""
    return {
        "name": "Planora API",
        "version": "0.1.0",
        "docs": "/docs",
    }
