"""Persistence port for the account lifecycle and its SQLAlchemy implementation.

Every write commits on its own. Signup and purge steps are deliberately
not wrapped in a shared transaction; each step has to stand alone so a
purge cycle can resume after a partial failure.
"""

import abc
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from planora_api.core.errors import DatastoreError
from planora_api.logging_config import get_logger
from planora_api.models import (
    EMAIL_VERIFICATION,
    AccountDeletionRequest,
    DeletionStatus,
    Profile,
    Role,
    TravelPreferences,
    UserRoleAssignment,
    VerificationCode,
)

logger = get_logger(__name__)

# Key inside verification_codes.metadata holding the encrypted password
PENDING_CREDENTIAL_KEY = "credential"


@dataclass(frozen=True)
class VerificationRecord:
    """Read model of a verification_codes row."""

    id: uuid.UUID
    email: str
    code: str
    expires_at: datetime
    used: bool
    pending_credential: str


@dataclass(frozen=True)
class DeletionCandidate:
    """A deletion request eligible for purging."""

    id: uuid.UUID
    user_id: uuid.UUID
    scheduled_purge_at: datetime


class AccountDatastore(abc.ABC):
    """Storage operations used by signup and purge.

    Implementations raise DatastoreError for any storage failure.
    Delete operations succeed when nothing matches.
    """

    # ── Verification codes ──

    @abc.abstractmethod
    async def replace_verification_request(
        self,
        email: str,
        code: str,
        expires_at: datetime,
        pending_credential: str,
    ) -> None:
        """Store a new code, discarding the email's earlier unused codes."""

    @abc.abstractmethod
    async def find_verification_request(
        self, email: str, code: str
    ) -> VerificationRecord | None:
        """Exact (email, code) lookup."""

    @abc.abstractmethod
    async def mark_verification_used(self, request_id: uuid.UUID) -> None: ...

    # ── Roles ──

    @abc.abstractmethod
    async def find_role_id(self, name: str) -> uuid.UUID | None: ...

    @abc.abstractmethod
    async def assign_role(self, user_id: uuid.UUID, role_id: uuid.UUID) -> None: ...

    # ── Deletion requests ──

    @abc.abstractmethod
    async def list_purge_candidates(
        self, now: datetime, stale_before: datetime
    ) -> list[DeletionCandidate]:
        """Pending requests due by ``now`` plus claims abandoned before ``stale_before``."""

    @abc.abstractmethod
    async def claim_deletion_request(
        self, request_id: uuid.UUID, now: datetime, stale_before: datetime
    ) -> bool:
        """Atomically flip a request to processing. False if someone else holds it."""

    @abc.abstractmethod
    async def release_deletion_request(self, request_id: uuid.UUID) -> None:
        """Return a claimed request to pending."""

    @abc.abstractmethod
    async def complete_deletion_request(
        self, request_id: uuid.UUID, purged_at: datetime
    ) -> None: ...

    # ── User data ──

    @abc.abstractmethod
    async def delete_travel_preferences(self, user_id: uuid.UUID) -> None: ...

    @abc.abstractmethod
    async def delete_profile(self, user_id: uuid.UUID) -> None: ...


class SqlAccountDatastore(AccountDatastore):
    """AccountDatastore backed by an AsyncSession."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncIterator[None]:
        """Translate SQLAlchemy failures into DatastoreError after rollback."""
        try:
            yield
        except SQLAlchemyError as e:
            await self._db.rollback()
            logger.error("Datastore operation failed", operation=name, error=str(e))
            raise DatastoreError(f"Datastore operation '{name}' failed.") from e

    async def replace_verification_request(
        self,
        email: str,
        code: str,
        expires_at: datetime,
        pending_credential: str,
    ) -> None:
        async with self._operation("replace_verification_request"):
            await self._db.execute(
                delete(VerificationCode).where(
                    VerificationCode.email == email,
                    VerificationCode.code_type == EMAIL_VERIFICATION,
                    VerificationCode.used.is_(False),
                )
            )
            self._db.add(
                VerificationCode(
                    email=email,
                    code=code,
                    code_type=EMAIL_VERIFICATION,
                    expires_at=expires_at,
                    used=False,
                    code_metadata={PENDING_CREDENTIAL_KEY: pending_credential},
                )
            )
            await self._db.commit()

    async def find_verification_request(
        self, email: str, code: str
    ) -> VerificationRecord | None:
        async with self._operation("find_verification_request"):
            result = await self._db.execute(
                select(VerificationCode).where(
                    VerificationCode.email == email,
                    VerificationCode.code == code,
                    VerificationCode.code_type == EMAIL_VERIFICATION,
                )
            )
            row = result.scalars().first()

        if row is None:
            return None
        return VerificationRecord(
            id=row.id,
            email=row.email,
            code=row.code,
            expires_at=row.expires_at,
            used=row.used,
            pending_credential=(row.code_metadata or {}).get(PENDING_CREDENTIAL_KEY, ""),
        )

    async def mark_verification_used(self, request_id: uuid.UUID) -> None:
        async with self._operation("mark_verification_used"):
            await self._db.execute(
                update(VerificationCode)
                .where(VerificationCode.id == request_id)
                .values(used=True)
            )
            await self._db.commit()

    async def find_role_id(self, name: str) -> uuid.UUID | None:
        async with self._operation("find_role_id"):
            result = await self._db.execute(select(Role.id).where(Role.name == name))
            return result.scalar_one_or_none()

    async def assign_role(self, user_id: uuid.UUID, role_id: uuid.UUID) -> None:
        async with self._operation("assign_role"):
            self._db.add(UserRoleAssignment(user_id=user_id, role_id=role_id))
            await self._db.commit()

    async def list_purge_candidates(
        self, now: datetime, stale_before: datetime
    ) -> list[DeletionCandidate]:
        async with self._operation("list_purge_candidates"):
            result = await self._db.execute(
                select(AccountDeletionRequest)
                .where(self._claimable(now, stale_before))
                .order_by(AccountDeletionRequest.scheduled_purge_at)
            )
            rows = result.scalars().all()

        return [
            DeletionCandidate(
                id=row.id,
                user_id=row.user_id,
                scheduled_purge_at=row.scheduled_purge_at,
            )
            for row in rows
        ]

    async def claim_deletion_request(
        self, request_id: uuid.UUID, now: datetime, stale_before: datetime
    ) -> bool:
        async with self._operation("claim_deletion_request"):
            result = await self._db.execute(
                update(AccountDeletionRequest)
                .where(
                    AccountDeletionRequest.id == request_id,
                    self._claimable(now, stale_before),
                )
                .values(status=DeletionStatus.PROCESSING, claimed_at=now)
            )
            await self._db.commit()
        return result.rowcount == 1

    async def release_deletion_request(self, request_id: uuid.UUID) -> None:
        async with self._operation("release_deletion_request"):
            await self._db.execute(
                update(AccountDeletionRequest)
                .where(
                    AccountDeletionRequest.id == request_id,
                    AccountDeletionRequest.status == DeletionStatus.PROCESSING,
                )
                .values(status=DeletionStatus.PENDING, claimed_at=None)
            )
            await self._db.commit()

    async def complete_deletion_request(
        self, request_id: uuid.UUID, purged_at: datetime
    ) -> None:
        async with self._operation("complete_deletion_request"):
            await self._db.execute(
                update(AccountDeletionRequest)
                .where(AccountDeletionRequest.id == request_id)
                .values(status=DeletionStatus.COMPLETED, purged_at=purged_at)
            )
            await self._db.commit()

    async def delete_travel_preferences(self, user_id: uuid.UUID) -> None:
        async with self._operation("delete_travel_preferences"):
            await self._db.execute(
                delete(TravelPreferences).where(TravelPreferences.user_id == user_id)
            )
            await self._db.commit()

    async def delete_profile(self, user_id: uuid.UUID) -> None:
        async with self._operation("delete_profile"):
            await self._db.execute(delete(Profile).where(Profile.id == user_id))
            await self._db.commit()

    @staticmethod
    def _claimable(now: datetime, stale_before: datetime):
        """Due pending requests, or processing claims older than stale_before."""
        return or_(
            and_(
                AccountDeletionRequest.status == DeletionStatus.PENDING,
                AccountDeletionRequest.scheduled_purge_at <= now,
            ),
            and_(
                AccountDeletionRequest.status == DeletionStatus.PROCESSING,
                AccountDeletionRequest.claimed_at < stale_before,
            ),
        )
