"""Tests for SqlAccountDatastore against a mocked AsyncSession."""

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from planora_api.core.errors import DatastoreError
from planora_api.models import VerificationCode
from planora_api.services.datastore import (
    PENDING_CREDENTIAL_KEY,
    DeletionCandidate,
    SqlAccountDatastore,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _session() -> AsyncMock:
    db = AsyncMock()
    db.add = MagicMock()
    return db


def _db_error() -> OperationalError:
    return OperationalError("SELECT 1", {}, Exception("connection refused"))


class TestVerificationRequests:
    async def test_replace_deletes_then_inserts(self):
        db = _session()
        store = SqlAccountDatastore(db)

        await store.replace_verification_request(
            "a@example.com", "123456", NOW, "encrypted-token"
        )

        assert db.execute.call_count == 1
        added = db.add.call_args.args[0]
        assert isinstance(added, VerificationCode)
        assert added.email == "a@example.com"
        assert added.code == "123456"
        assert added.used is False
        assert added.code_metadata == {PENDING_CREDENTIAL_KEY: "encrypted-token"}
        db.commit.assert_awaited_once()

    async def test_find_returns_none_when_missing(self):
        db = _session()
        result = MagicMock()
        result.scalars.return_value.first.return_value = None
        db.execute.return_value = result

        assert await SqlAccountDatastore(db).find_verification_request("a@x.com", "1") is None

    async def test_find_maps_row(self):
        db = _session()
        row = VerificationCode(
            id=uuid.uuid4(),
            email="a@example.com",
            code="654321",
            expires_at=NOW,
            used=False,
            code_metadata={PENDING_CREDENTIAL_KEY: "token"},
        )
        result = MagicMock()
        result.scalars.return_value.first.return_value = row
        db.execute.return_value = result

        record = await SqlAccountDatastore(db).find_verification_request(
            "a@example.com", "654321"
        )

        assert record.id == row.id
        assert record.used is False
        assert record.pending_credential == "token"

    async def test_mark_used_commits(self):
        db = _session()

        await SqlAccountDatastore(db).mark_verification_used(uuid.uuid4())

        db.execute.assert_awaited_once()
        db.commit.assert_awaited_once()


class TestRoles:
    async def test_find_role_id(self):
        db = _session()
        role_id = uuid.uuid4()
        result = MagicMock()
        result.scalar_one_or_none.return_value = role_id
        db.execute.return_value = result

        assert await SqlAccountDatastore(db).find_role_id("user") == role_id

    async def test_assign_role_failure_rolls_back(self):
        db = _session()
        db.commit.side_effect = _db_error()

        with pytest.raises(DatastoreError) as exc_info:
            await SqlAccountDatastore(db).assign_role(uuid.uuid4(), uuid.uuid4())

        assert exc_info.value.message == "Datastore operation 'assign_role' failed."
        db.rollback.assert_awaited_once()


class TestDeletionRequests:
    async def test_list_candidates(self):
        db = _session()
        row = MagicMock(id=uuid.uuid4(), user_id=uuid.uuid4(), scheduled_purge_at=NOW)
        result = MagicMock()
        result.scalars.return_value.all.return_value = [row]
        db.execute.return_value = result

        candidates = await SqlAccountDatastore(db).list_purge_candidates(
            NOW, NOW - timedelta(hours=1)
        )

        assert candidates == [
            DeletionCandidate(id=row.id, user_id=row.user_id, scheduled_purge_at=NOW)
        ]

    async def test_list_candidates_failure(self):
        db = _session()
        db.execute.side_effect = _db_error()

        with pytest.raises(DatastoreError):
            await SqlAccountDatastore(db).list_purge_candidates(NOW, NOW)

        db.rollback.assert_awaited_once()

    @pytest.mark.parametrize("rowcount,expected", [(1, True), (0, False)])
    async def test_claim_reports_whether_row_changed(self, rowcount, expected):
        db = _session()
        db.execute.return_value = MagicMock(rowcount=rowcount)

        claimed = await SqlAccountDatastore(db).claim_deletion_request(
            uuid.uuid4(), NOW, NOW - timedelta(hours=1)
        )

        assert claimed is expected
        db.commit.assert_awaited_once()

    async def test_release_and_complete_commit(self):
        db = _session()
        store = SqlAccountDatastore(db)

        await store.release_deletion_request(uuid.uuid4())
        await store.complete_deletion_request(uuid.uuid4(), NOW)

        assert db.execute.await_count == 2
        assert db.commit.await_count == 2


class TestUserData:
    async def test_deletes_commit(self):
        db = _session()
        store = SqlAccountDatastore(db)

        await store.delete_travel_preferences(uuid.uuid4())
        await store.delete_profile(uuid.uuid4())

        assert db.execute.await_count == 2
        assert db.commit.await_count == 2

    async def test_delete_profile_failure(self):
        db = _session()
        db.execute.side_effect = _db_error()

        with pytest.raises(DatastoreError) as exc_info:
            await SqlAccountDatastore(db).delete_profile(uuid.uuid4())

        assert "delete_profile" in exc_info.value.message
