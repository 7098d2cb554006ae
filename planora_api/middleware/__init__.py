"""Middleware package for the Planora API."""

from planora_api.middleware.correlation import (
    CORRELATION_ID_HEADER,
    CorrelationIdMiddleware,
)
from planora_api.middleware.rate_limit import limiter, rate_limit_exceeded_handler

__all__ = [
    "CORRELATION_ID_HEADER",
    "CorrelationIdMiddleware",
    "limiter",
    "rate_limit_exceeded_handler",
]
