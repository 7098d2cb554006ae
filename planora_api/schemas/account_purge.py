"""Account purge report schema (camelCase on the wire)."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from planora_api.services.account_purge import PurgeReport


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PurgeResultItem(_CamelModel):
    user_id: uuid.UUID
    success: bool
    error: str | None = None


class PurgeReportResponse(_CamelModel):
    processed_at: datetime
    total_processed: int
    results: list[PurgeResultItem]

    @classmethod
    def from_report(cls, report: PurgeReport) -> "PurgeReportResponse":
        return cls(
            processed_at=report.processed_at,
            total_processed=report.total_processed,
            results=[
                PurgeResultItem(
                    user_id=r.user_id,
                    success=r.success,
                    error=r.error,
                )
                for r in report.results
            ],
        )
