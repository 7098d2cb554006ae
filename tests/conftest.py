"""Pytest configuration and shared fixtures.

Signup and purge run against in-memory collaborators, so no database or
outbound HTTP is needed. Each fake can be told to fail a named operation.
"""

import os
import uuid
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set testing mode BEFORE importing app (NullPool, rate limiting off)
os.environ["TESTING"] = "true"

from planora_api.config import settings

settings.testing = True

from planora_api.core.errors import DatastoreError, IdentityCreationError
from planora_api.main import app
from planora_api.models import DeletionStatus
from planora_api.routers.account_purge import get_purge_worker
from planora_api.services.account_context import AccountContext, get_account_context
from planora_api.services.account_purge import PurgeWorker
from planora_api.services.datastore import (
    AccountDatastore,
    DeletionCandidate,
    VerificationRecord,
)
from planora_api.services.identity_provider import IdentityProvider
from planora_api.services.notifications import NotificationService

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class _FailureInjection:
    def __init__(self) -> None:
        self.fail_on: dict[str, Exception] = {}

    def _maybe_fail(self, operation: str) -> None:
        exc = self.fail_on.get(operation)
        if exc is not None:
            raise exc


@dataclass
class StoredDeletionRequest:
    id: uuid.UUID
    user_id: uuid.UUID
    scheduled_purge_at: datetime
    status: DeletionStatus = DeletionStatus.PENDING
    claimed_at: datetime | None = None
    purged_at: datetime | None = None


class FakeDatastore(_FailureInjection, AccountDatastore):
    """Dict-backed AccountDatastore."""

    def __init__(self) -> None:
        super().__init__()
        self.verifications: dict[uuid.UUID, VerificationRecord] = {}
        self.roles: dict[str, uuid.UUID] = {"user": uuid.uuid4()}
        self.role_assignments: set[tuple[uuid.UUID, uuid.UUID]] = set()
        self.deletion_requests: dict[uuid.UUID, StoredDeletionRequest] = {}
        self.travel_preferences: set[uuid.UUID] = set()
        self.profiles: set[uuid.UUID] = set()
        # Claims another worker already holds
        self.claimed_elsewhere: set[uuid.UUID] = set()

    def fail(self, operation: str, exc: Exception | None = None) -> None:
        self.fail_on[operation] = exc or DatastoreError(f"Datastore operation '{operation}' failed.")

    # ── helpers ──

    def add_user_data(self, user_id: uuid.UUID) -> None:
        self.travel_preferences.add(user_id)
        self.profiles.add(user_id)

    def add_deletion_request(
        self,
        user_id: uuid.UUID,
        scheduled_purge_at: datetime,
        status: DeletionStatus = DeletionStatus.PENDING,
        claimed_at: datetime | None = None,
    ) -> StoredDeletionRequest:
        request = StoredDeletionRequest(
            id=uuid.uuid4(),
            user_id=user_id,
            scheduled_purge_at=scheduled_purge_at,
            status=status,
            claimed_at=claimed_at,
        )
        self.deletion_requests[request.id] = request
        return request

    def verifications_for(self, email: str) -> list[VerificationRecord]:
        return [r for r in self.verifications.values() if r.email == email]

    def _claimable(
        self, request: StoredDeletionRequest, now: datetime, stale_before: datetime
    ) -> bool:
        if request.status is DeletionStatus.PENDING:
            return request.scheduled_purge_at <= now
        if request.status is DeletionStatus.PROCESSING:
            return request.claimed_at is not None and request.claimed_at < stale_before
        return False

    # ── AccountDatastore ──

    async def replace_verification_request(self, email, code, expires_at, pending_credential):
        self._maybe_fail("replace_verification_request")
        self.verifications = {
            k: v for k, v in self.verifications.items() if v.email != email or v.used
        }
        record = VerificationRecord(
            id=uuid.uuid4(),
            email=email,
            code=code,
            expires_at=expires_at,
            used=False,
            pending_credential=pending_credential,
        )
        self.verifications[record.id] = record

    async def find_verification_request(self, email, code):
        self._maybe_fail("find_verification_request")
        for record in self.verifications.values():
            if record.email == email and record.code == code:
                return record
        return None

    async def mark_verification_used(self, request_id):
        self._maybe_fail("mark_verification_used")
        self.verifications[request_id] = replace(self.verifications[request_id], used=True)

    async def find_role_id(self, name):
        self._maybe_fail("find_role_id")
        return self.roles.get(name)

    async def assign_role(self, user_id, role_id):
        self._maybe_fail("assign_role")
        self.role_assignments.add((user_id, role_id))

    async def list_purge_candidates(self, now, stale_before):
        self._maybe_fail("list_purge_candidates")
        due = [
            r for r in self.deletion_requests.values() if self._claimable(r, now, stale_before)
        ]
        return [
            DeletionCandidate(id=r.id, user_id=r.user_id, scheduled_purge_at=r.scheduled_purge_at)
            for r in sorted(due, key=lambda r: r.scheduled_purge_at)
        ]

    async def claim_deletion_request(self, request_id, now, stale_before):
        self._maybe_fail("claim_deletion_request")
        request = self.deletion_requests[request_id]
        if request_id in self.claimed_elsewhere or not self._claimable(request, now, stale_before):
            return False
        request.status = DeletionStatus.PROCESSING
        request.claimed_at = now
        return True

    async def release_deletion_request(self, request_id):
        self._maybe_fail("release_deletion_request")
        request = self.deletion_requests[request_id]
        if request.status is DeletionStatus.PROCESSING:
            request.status = DeletionStatus.PENDING
            request.claimed_at = None

    async def complete_deletion_request(self, request_id, purged_at):
        self._maybe_fail("complete_deletion_request")
        request = self.deletion_requests[request_id]
        request.status = DeletionStatus.COMPLETED
        request.purged_at = purged_at

    async def delete_travel_preferences(self, user_id):
        self._maybe_fail("delete_travel_preferences")
        self.travel_preferences.discard(user_id)

    async def delete_profile(self, user_id):
        self._maybe_fail("delete_profile")
        self.profiles.discard(user_id)


class FakeIdentityProvider(_FailureInjection, IdentityProvider):
    """Identities kept in a dict of id -> (email, password)."""

    def __init__(self) -> None:
        super().__init__()
        self.users: dict[uuid.UUID, tuple[str, str]] = {}
        self.deleted: list[uuid.UUID] = []

    def add_user(self, email: str) -> uuid.UUID:
        user_id = uuid.uuid4()
        self.users[user_id] = (email, "password")
        return user_id

    async def create_user(self, email, password, email_confirmed=True):
        self._maybe_fail("create_user")
        if any(existing == email for existing, _ in self.users.values()):
            raise IdentityCreationError(
                "A user with this email address has already been registered."
            )
        user_id = uuid.uuid4()
        self.users[user_id] = (email, password)
        return user_id

    async def delete_user(self, user_id):
        self._maybe_fail("delete_user")
        self.users.pop(user_id, None)
        self.deleted.append(user_id)


class FakeNotifier(_FailureInjection, NotificationService):
    """Records every (email, code) it is asked to send."""

    def __init__(self) -> None:
        super().__init__()
        self.sent: list[tuple[str, str]] = []

    def last_code_for(self, email: str) -> str:
        return [code for to, code in self.sent if to == email][-1]

    async def send_verification_code(self, email, code):
        self._maybe_fail("send_verification_code")
        self.sent.append((email, code))


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def datastore() -> FakeDatastore:
    return FakeDatastore()


@pytest.fixture
def identity() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def account_ctx(datastore, identity, notifier, clock) -> AccountContext:
    return AccountContext(
        datastore=datastore,
        identity=identity,
        notifier=notifier,
        clock=clock,
    )


@pytest.fixture
def context_factory(account_ctx):
    """Stand-in for account_context_scope that always yields the fakes."""

    @asynccontextmanager
    async def factory() -> AsyncIterator[AccountContext]:
        yield account_ctx

    return factory


@pytest.fixture
def purge_worker(context_factory) -> PurgeWorker:
    return PurgeWorker(context_factory)


@pytest_asyncio.fixture
async def client(account_ctx, purge_worker) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client with collaborators swapped for the fakes."""
    app.dependency_overrides[get_account_context] = lambda: account_ctx
    app.dependency_overrides[get_purge_worker] = lambda: purge_worker
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
