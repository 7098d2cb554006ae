"""Pending signup verification codes."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from planora_api.models.base import Base

EMAIL_VERIFICATION = "EMAIL_VERIFICATION"


class VerificationCode(Base):
    """Single-use, time-boxed code binding an email to a pending credential.

    ``used`` only ever goes from False to True. Expiry is not stored as a
    state; a row is simply unusable once ``expires_at`` has passed.
    """

    __tablename__ = "verification_codes"
    __table_args__ = (
        Index("ix_verification_codes_email_code", "email", "code"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(6), nullable=False)
    code_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=EMAIL_VERIFICATION,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    used: Mapped[bool] = mapped_column(default=False, nullable=False)
    # "metadata" is reserved on declarative classes
    code_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSONB,
        nullable=False,
        default=dict,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
