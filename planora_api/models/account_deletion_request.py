"""Scheduled account deletion requests."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, Index, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from planora_api.models.base import Base


class DeletionStatus(str, enum.Enum):
    """Lifecycle of a deletion request.

    - PENDING: waiting for its grace period to end, or released after a failure
    - PROCESSING: claimed by a purge worker
    - COMPLETED: every deletion step ran; never picked up again
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"


class AccountDeletionRequest(Base):
    """A user's request to be purged once ``scheduled_purge_at`` passes.

    Rows are created by the account-management flow; only the purge
    worker changes their status.
    """

    __tablename__ = "account_deletion_requests"
    __table_args__ = (
        Index(
            "ix_account_deletion_requests_status_scheduled",
            "status",
            "scheduled_purge_at",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        index=True,
    )
    status: Mapped[DeletionStatus] = mapped_column(
        Enum(
            DeletionStatus,
            name="deletionstatus",
            create_type=False,  # Created in migration
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
        default=DeletionStatus.PENDING,
    )
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    scheduled_purge_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    claimed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    purged_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
