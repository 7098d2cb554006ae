"""Per-user travel planning preferences."""

import uuid

from sqlalchemy import String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from planora_api.models.base import Base, TimestampMixin


class TravelPreferences(Base, TimestampMixin):
    """One row per user (UNIQUE on user_id)."""

    __tablename__ = "travel_preferences"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        unique=True,
    )
    budget_min: Mapped[int] = mapped_column(default=0)
    budget_max: Mapped[int] = mapped_column(default=0)
    travel_duration: Mapped[str] = mapped_column(String(50), default="week")
    departure_country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    departure_city: Mapped[str | None] = mapped_column(String(100), nullable=True)
