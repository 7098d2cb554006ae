"""Scheduled account purge.

Deletes users whose deletion grace period has ended. Each user is purged
by a saga: an ordered list of idempotent steps, each declaring whether a
failure lets the user's remaining steps continue (soft dependency) or
aborts them (hard dependency). Nothing is rolled back; an aborted user
stays pending and the next cycle repeats the already-finished steps as
no-ops before retrying the one that failed.

One user's failure never stops the cycle. Only failing to list the
candidates at all is fatal for an invocation.
"""

import asyncio
import enum
import uuid
from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from planora_api.config import settings
from planora_api.core.errors import AccountLifecycleError, PartialFailure
from planora_api.logging_config import get_logger
from planora_api.services.account_context import AccountContext, account_context_scope
from planora_api.services.datastore import DeletionCandidate

logger = get_logger(__name__)

ContextFactory = Callable[[], AbstractAsyncContextManager[AccountContext]]


class StepPolicy(str, enum.Enum):
    """What a failing step means for the rest of the user's purge."""

    CONTINUE = "continue"
    ABORT = "abort"


@dataclass(frozen=True)
class PurgeStep:
    name: str
    policy: StepPolicy
    run: Callable[[AccountContext, uuid.UUID], Awaitable[None]]


async def _delete_travel_preferences(ctx: AccountContext, user_id: uuid.UUID) -> None:
    await ctx.datastore.delete_travel_preferences(user_id)


async def _delete_profile(ctx: AccountContext, user_id: uuid.UUID) -> None:
    await ctx.datastore.delete_profile(user_id)


async def _delete_identity(ctx: AccountContext, user_id: uuid.UUID) -> None:
    await ctx.identity.delete_user(user_id)


PURGE_STEPS: tuple[PurgeStep, ...] = (
    PurgeStep("travel_preferences", StepPolicy.CONTINUE, _delete_travel_preferences),
    PurgeStep("profile", StepPolicy.ABORT, _delete_profile),
    PurgeStep("identity", StepPolicy.ABORT, _delete_identity),
)


@dataclass(frozen=True)
class UserPurgeResult:
    user_id: uuid.UUID
    success: bool
    error: str | None = None


@dataclass
class PurgeReport:
    """Outcome of one purge cycle.

    ``total_processed`` counts every candidate considered, including any
    skipped because another worker had already claimed it.
    """

    processed_at: datetime
    total_processed: int
    results: list[UserPurgeResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)


class PurgeWorker:
    """Runs purge cycles against collaborators from ``context_factory``.

    The factory is entered once to list candidates and once per user, so
    each user runs on its own session. Up to ``max_concurrency`` users are
    purged at a time; steps for a single user always run in order.
    """

    def __init__(
        self,
        context_factory: ContextFactory,
        *,
        steps: tuple[PurgeStep, ...] = PURGE_STEPS,
        max_concurrency: int = 1,
        stale_claim_after: timedelta = timedelta(hours=1),
    ) -> None:
        self._context_factory = context_factory
        self._steps = steps
        self._max_concurrency = max(1, max_concurrency)
        self._stale_claim_after = stale_claim_after

    async def run_purge_cycle(self, now: datetime) -> PurgeReport:
        """Purge every account due at ``now``.

        Raises:
            DatastoreError: If the candidates could not be listed.
        """
        stale_before = now - self._stale_claim_after

        async with self._context_factory() as ctx:
            candidates = await ctx.datastore.list_purge_candidates(now, stale_before)

        logger.info("Found accounts to purge", count=len(candidates))

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def bounded(candidate: DeletionCandidate) -> UserPurgeResult | None:
            async with semaphore:
                return await self._purge_candidate(candidate, now, stale_before)

        outcomes = await asyncio.gather(*(bounded(c) for c in candidates))

        report = PurgeReport(
            processed_at=now,
            total_processed=len(candidates),
            results=[outcome for outcome in outcomes if outcome is not None],
        )
        logger.info(
            "Account purge cycle finished",
            total_processed=report.total_processed,
            succeeded=report.succeeded,
            failed=report.failed,
        )
        return report

    async def _purge_candidate(
        self,
        candidate: DeletionCandidate,
        now: datetime,
        stale_before: datetime,
    ) -> UserPurgeResult | None:
        user_id = candidate.user_id
        try:
            async with self._context_factory() as ctx:
                claimed = await ctx.datastore.claim_deletion_request(
                    candidate.id, now, stale_before
                )
                if not claimed:
                    logger.info(
                        "Deletion request claimed elsewhere, skipping",
                        request_id=str(candidate.id),
                        user_id=str(user_id),
                    )
                    return None

                logger.info("Purging account", user_id=str(user_id))
                try:
                    await self._run_steps(ctx, user_id)
                except PartialFailure as e:
                    logger.error(
                        "Account purge aborted",
                        user_id=str(user_id),
                        step=e.step,
                        error=str(e.cause),
                    )
                    await self._release(ctx, candidate)
                    return UserPurgeResult(user_id=user_id, success=False, error=e.message)

                await self._finalize(ctx, candidate, now)
        except Exception as e:
            logger.exception("Unexpected error purging account", user_id=str(user_id))
            return UserPurgeResult(user_id=user_id, success=False, error=str(e))

        logger.info("Account purged", user_id=str(user_id))
        return UserPurgeResult(user_id=user_id, success=True)

    async def _run_steps(self, ctx: AccountContext, user_id: uuid.UUID) -> None:
        for step in self._steps:
            try:
                await step.run(ctx, user_id)
            except Exception as e:
                if step.policy is StepPolicy.CONTINUE:
                    logger.warning(
                        "Purge step failed, continuing",
                        user_id=str(user_id),
                        step=step.name,
                        error=str(e),
                    )
                    continue
                raise PartialFailure(user_id, step.name, e) from e

    async def _finalize(
        self,
        ctx: AccountContext,
        candidate: DeletionCandidate,
        now: datetime,
    ) -> None:
        """Mark the request completed.

        Deletions are not undone if this fails; the claim goes back to
        pending so a later cycle re-runs the (now no-op) steps and completes it.
        """
        try:
            await ctx.datastore.complete_deletion_request(candidate.id, now)
        except AccountLifecycleError as e:
            logger.error(
                "Failed to mark deletion request completed",
                request_id=str(candidate.id),
                user_id=str(candidate.user_id),
                error=e.message,
            )
            await self._release(ctx, candidate)

    async def _release(self, ctx: AccountContext, candidate: DeletionCandidate) -> None:
        try:
            await ctx.datastore.release_deletion_request(candidate.id)
        except AccountLifecycleError as e:
            # Left in processing; reclaimed once the claim goes stale.
            logger.error(
                "Failed to release deletion request",
                request_id=str(candidate.id),
                error=e.message,
            )


def build_purge_worker() -> PurgeWorker:
    """Worker wired to the database and configured limits."""
    return PurgeWorker(
        account_context_scope,
        max_concurrency=settings.purge_max_concurrency,
        stale_claim_after=timedelta(minutes=settings.purge_stale_claim_minutes),
    )
