"""Health check endpoints for container orchestration."""

from typing import Any

from fastapi import APIRouter, Response, status
from fastapi.responses import JSONResponse

from planora_api.database import check_database_connection

router = APIRouter(tags=["Health"])


async def _database_status(ok_status: str, failed_status: str) -> Response:
    if await check_database_connection():
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"status": ok_status, "database": "connected"},
        )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": failed_status, "database": "disconnected"},
    )


@router.get("/health", response_model=None)
async def health_check() -> Response:
    """Overall health including database connectivity."""
    return await _database_status("healthy", "degraded")


@router.get("/health/live")
async def liveness_probe() -> dict[str, Any]:
    """Process is up. Deliberately ignores the database."""
    return {"status": "alive"}


@router.get("/health/ready", response_model=None)
async def readiness_probe() -> Response:
    """Ready to serve traffic (database reachable)."""
    return await _database_status("ready", "not_ready")
