"""Account purge trigger for external schedulers (cron).

When PURGE_CRON_SECRET is set the caller must send
``Authorization: Bearer <secret>``.
"""

import secrets
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request, Response

from planora_api.config import settings
from planora_api.core.cors import cors_json, preflight_response
from planora_api.core.errors import DatastoreError
from planora_api.logging_config import get_logger
from planora_api.schemas.account_purge import PurgeReportResponse
from planora_api.services.account_purge import PurgeWorker, build_purge_worker

logger = get_logger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["Account Purge"])

PURGE_PATH = "/scheduled-account-purge"


def get_purge_worker() -> PurgeWorker:
    return build_purge_worker()


def _is_authorized(request: Request) -> bool:
    if not settings.purge_cron_secret:
        return True
    supplied = request.headers.get("authorization", "")
    return secrets.compare_digest(supplied, f"Bearer {settings.purge_cron_secret}")


@router.options(PURGE_PATH)
async def purge_preflight() -> Response:
    return preflight_response()


@router.post(PURGE_PATH, response_model=None)
async def scheduled_account_purge(
    request: Request,
    worker: PurgeWorker = Depends(get_purge_worker),
) -> Response:
    """Run one purge cycle and return its report."""
    if not _is_authorized(request):
        logger.warning("Unauthorized account purge trigger")
        return cors_json({"error": "Unauthorized"}, status_code=401)

    logger.info("Starting triggered account purge")
    try:
        report = await worker.run_purge_cycle(datetime.now(UTC))
    except DatastoreError as e:
        logger.error("Error fetching deletion requests", error=e.message)
        return cors_json({"error": e.message}, status_code=500)

    body = PurgeReportResponse.from_report(report)
    return cors_json(body.model_dump(mode="json", by_alias=True, exclude_none=True))
