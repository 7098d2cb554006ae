"""Locally stored identities (used by LocalIdentityProvider)."""

import uuid

from sqlalchemy import String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from planora_api.models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """Authenticated identity.

    Attributes:
        id: Unique user identifier, shared by profile and role rows
        email: Login address (unique)
        hashed_password: Bcrypt hash
        email_confirmed: True once the address was proven by a code
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    email_confirmed: Mapped[bool] = mapped_column(default=False)

    def __repr__(self) -> str:
        return f"<User {self.email}>"
