"""Explicit wiring of account-lifecycle collaborators.

Handlers receive an AccountContext instead of reaching for module-level
clients. Request handlers get one per request through FastAPI
dependencies; the purge worker opens one per user.
"""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from planora_api.config import settings
from planora_api.database import get_db, get_db_session
from planora_api.services.datastore import AccountDatastore, SqlAccountDatastore
from planora_api.services.identity_provider import (
    IdentityProvider,
    LocalIdentityProvider,
    SupabaseIdentityProvider,
)
from planora_api.services.notifications import (
    NotificationService,
    ResendNotificationService,
)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class AccountContext:
    """Collaborators for one signup call or one purged user."""

    datastore: AccountDatastore
    identity: IdentityProvider
    notifier: NotificationService
    clock: Clock = utcnow


def build_identity_provider(db: AsyncSession) -> IdentityProvider:
    """Pick the identity backend named by IDENTITY_PROVIDER."""
    if settings.identity_provider == "supabase":
        return SupabaseIdentityProvider(
            settings.supabase_url,
            settings.supabase_service_role_key,
        )
    return LocalIdentityProvider(db)


def build_notifier() -> NotificationService:
    return ResendNotificationService(
        api_key=settings.resend_api_key,
        api_url=settings.resend_api_url,
        sender=settings.email_from,
        code_ttl_minutes=settings.verification_code_ttl_minutes,
    )


def build_account_context(db: AsyncSession) -> AccountContext:
    return AccountContext(
        datastore=SqlAccountDatastore(db),
        identity=build_identity_provider(db),
        notifier=build_notifier(),
    )


async def get_account_context(
    db: AsyncSession = Depends(get_db),
) -> AccountContext:
    """FastAPI dependency: context bound to the request's session."""
    return build_account_context(db)


@asynccontextmanager
async def account_context_scope() -> AsyncIterator[AccountContext]:
    """Context on a fresh session, for work outside a request."""
    async with get_db_session() as session:
        yield build_account_context(session)
