"""Rate limiting for the public signup endpoint (slowapi)."""

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request
from starlette.responses import JSONResponse

from planora_api.config import settings
from planora_api.core.cors import cors_json


def _get_real_client_ip(request: Request) -> str:
    """Client IP, honouring X-Forwarded-For / X-Real-IP behind a proxy."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


limiter = Limiter(
    key_func=_get_real_client_ip,
    storage_uri="memory://" if settings.testing else settings.rate_limit_storage_uri,
    enabled=not settings.testing,
)


async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """429 in the endpoint's own ``{"error": ...}`` shape."""
    return cors_json({"error": f"Rate limit exceeded: {exc.detail}"}, status_code=429)
