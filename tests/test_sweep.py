"""Tests for PurgeSweep — threshold selection, per-user isolation, locking."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from userpurge.purge.errors import ConfigurationError, StorageError
from userpurge.purge.options import Options
from userpurge.purge.sweep import PurgeSweep, SweepResult, compute_threshold, purge_users
from userpurge.schemas.events import EventType

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


def _days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


@pytest.fixture
def patched_store(store, sweep_session):
    with patch("userpurge.purge.sweep.InactivityStore", store):
        yield store


@pytest.fixture
def deleter(patched_store, make_deleter):
    return make_deleter(patched_store)


@pytest.fixture
def sweep(make_options, deleter, free_lock):
    return PurgeSweep(make_options(days=10), deleter=deleter, lock=free_lock, deletion_timeout=0.05)


# ── Threshold ────────────────────────────────────────────────────────


class TestComputeThreshold:
    def test_subtracts_whole_days(self):
        assert compute_threshold(NOW, 10) == NOW - timedelta(seconds=10 * 86400)

    def test_zero_days(self):
        assert compute_threshold(NOW, 0) == NOW

    def test_negative_days_rejected(self):
        with pytest.raises(ConfigurationError):
            compute_threshold(NOW, -1)


# ── Selection scenarios ──────────────────────────────────────────────


class TestSelection:
    @pytest.mark.asyncio
    async def test_older_than_retention_is_deleted(self, sweep, patched_store, deleter):
        """Scenario A: 11 days inactive with a 10-day retention."""
        user_id = uuid.uuid4()
        patched_store.records[user_id] = _days_ago(11)

        result = await sweep.run_sweep(now=NOW)

        assert deleter.calls == [user_id]
        assert result.deleted == [user_id]
        assert user_id not in patched_store.records

    @pytest.mark.asyncio
    async def test_younger_than_retention_is_kept(self, sweep, patched_store, deleter):
        """Scenario B: 9 days inactive with a 10-day retention."""
        user_id = uuid.uuid4()
        patched_store.records[user_id] = _days_ago(9)

        result = await sweep.run_sweep(now=NOW)

        assert deleter.calls == []
        assert result.matched == 0
        assert user_id in patched_store.records

    @pytest.mark.asyncio
    async def test_exactly_at_threshold_is_kept(self, sweep, patched_store, deleter):
        patched_store.records[uuid.uuid4()] = _days_ago(10)

        await sweep.run_sweep(now=NOW)

        assert deleter.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("retention_days", [0, 10, 100_000])
    async def test_preserved_user_never_selected(self, sweep, patched_store, deleter, retention_days):
        """Scenario C: the preserve sentinel never matches."""
        user_id = uuid.uuid4()
        patched_store.records[user_id] = None

        await sweep.run_sweep(now=NOW, retention_days=retention_days)

        assert deleter.calls == []
        assert patched_store.records == {user_id: None}

    @pytest.mark.asyncio
    async def test_each_match_deleted_once(self, sweep, patched_store, deleter):
        expired = {uuid.uuid4() for _ in range(5)}
        for user_id in expired:
            patched_store.records[user_id] = _days_ago(30)
        fresh = uuid.uuid4()
        patched_store.records[fresh] = _days_ago(1)

        result = await sweep.run_sweep(now=NOW)

        assert sorted(deleter.calls) == sorted(expired)
        assert len(deleter.calls) == len(set(deleter.calls))
        assert result.matched == 5
        assert set(patched_store.records) == {fresh}

    @pytest.mark.asyncio
    async def test_explicit_retention_overrides_options(self, sweep, patched_store, deleter):
        user_id = uuid.uuid4()
        patched_store.records[user_id] = _days_ago(11)

        result = await sweep.run_sweep(now=NOW, retention_days=30)

        assert deleter.calls == []
        assert result.retention_days == 30
        assert result.threshold == _days_ago(30)


class TestIdempotence:
    @pytest.mark.asyncio
    async def test_second_run_deletes_nothing(self, sweep, patched_store, deleter):
        for _ in range(3):
            patched_store.records[uuid.uuid4()] = _days_ago(20)

        first = await sweep.run_sweep(now=NOW)
        second = await sweep.run_sweep(now=NOW)

        assert len(first.deleted) == 3
        assert second.matched == 0
        assert second.deleted == []
        assert len(deleter.calls) == 3

    @pytest.mark.asyncio
    async def test_reactivated_user_is_not_selected(self, sweep, patched_store, deleter):
        """Scenario E: once the record is removed no threshold selects the user."""
        user_id = uuid.uuid4()
        patched_store.records[user_id] = _days_ago(400)
        await patched_store.remove(user_id)

        await sweep.run_sweep(now=NOW, retention_days=0)

        assert deleter.calls == []

    @pytest.mark.asyncio
    async def test_already_deleted_user_is_not_a_failure(self, sweep, patched_store, deleter):
        user_id = uuid.uuid4()
        patched_store.records[user_id] = _days_ago(20)
        deleter.deleted.add(user_id)

        result = await sweep.run_sweep(now=NOW)

        assert result.already_gone == [user_id]
        assert result.failed == {}


# ── Failure isolation ────────────────────────────────────────────────


class TestFailures:
    @pytest.mark.asyncio
    async def test_deletion_error_does_not_stop_batch(self, make_options, make_deleter, patched_store, free_lock):
        bad, good = uuid.uuid4(), uuid.uuid4()
        patched_store.records[bad] = _days_ago(20)
        patched_store.records[good] = _days_ago(20)
        deleter = make_deleter(patched_store, fail={bad})
        sweep = PurgeSweep(make_options(days=10), deleter=deleter, lock=free_lock)

        result = await sweep.run_sweep(now=NOW)

        assert result.deleted == [good]
        assert bad in result.failed
        assert "referenced elsewhere" in result.failed[bad]

    @pytest.mark.asyncio
    async def test_stuck_deletion_times_out(self, make_options, make_deleter, patched_store, free_lock):
        stuck, good = uuid.uuid4(), uuid.uuid4()
        patched_store.records[stuck] = _days_ago(20)
        patched_store.records[good] = _days_ago(20)
        deleter = make_deleter(patched_store, hang={stuck})
        sweep = PurgeSweep(make_options(days=10), deleter=deleter, lock=free_lock, deletion_timeout=0.05)

        result = await sweep.run_sweep(now=NOW)

        assert result.deleted == [good]
        assert "timed out" in result.failed[stuck]

    @pytest.mark.asyncio
    async def test_failed_user_emits_event(self, make_options, make_deleter, patched_store, free_lock, mock_emit):
        bad = uuid.uuid4()
        patched_store.records[bad] = _days_ago(20)
        sweep = PurgeSweep(make_options(days=10), deleter=make_deleter(patched_store, fail={bad}), lock=free_lock)

        await sweep.run_sweep(now=NOW)

        types = [call[0][0].event_type for call in mock_emit["sweep"].call_args_list]
        assert EventType.USER_PURGE_FAILED in types
        assert types[-1] == EventType.SWEEP_COMPLETED

    @pytest.mark.asyncio
    async def test_selection_failure_aborts(self, sweep, deleter, sweep_session, mock_emit, free_lock):
        failing = AsyncMock()
        failing.expired_user_ids.side_effect = StorageError("relation does not exist")

        with patch("userpurge.purge.sweep.InactivityStore", return_value=failing):
            with pytest.raises(StorageError):
                await sweep.run_sweep(now=NOW)

        assert deleter.calls == []
        event = mock_emit["sweep"].call_args[0][0]
        assert event.event_type == EventType.SWEEP_FAILED
        free_lock.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unreachable_database_contained_by_job(self, store, make_deleter, sweep_session, free_lock, mock_emit):
        refused = ConnectionRefusedError(111, "Connect call failed ('127.0.0.1', 5432)")
        sweep_session.get.side_effect = refused
        sweep_session.execute.side_effect = refused
        deleter = make_deleter(store)
        sweep = PurgeSweep(Options(options_prefix="test"), deleter=deleter, lock=free_lock)

        with patch("userpurge.purge.sweep.purge_sweep", sweep):
            assert await purge_users() is None

        assert deleter.calls == []
        assert mock_emit["sweep"].call_args[0][0].event_type == EventType.SWEEP_FAILED
        free_lock.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unreachable_database_during_selection(
        self, make_options, store, make_deleter, sweep_session, free_lock, mock_emit
    ):
        sweep_session.execute.side_effect = ConnectionRefusedError(111, "Connect call failed")
        sweep = PurgeSweep(make_options(days=10), deleter=make_deleter(store), lock=free_lock)

        with pytest.raises(StorageError):
            await sweep.run_sweep(now=NOW)

        assert mock_emit["sweep"].call_args[0][0].event_type == EventType.SWEEP_FAILED


# ── Locking ──────────────────────────────────────────────────────────


class TestLocking:
    @pytest.mark.asyncio
    async def test_skips_when_lock_held(self, make_options, deleter, patched_store, mock_emit):
        patched_store.records[uuid.uuid4()] = _days_ago(20)
        busy = AsyncMock()
        busy.acquire.return_value = False
        sweep = PurgeSweep(make_options(days=10), deleter=deleter, lock=busy)

        result = await sweep.run_sweep(now=NOW)

        assert result.skipped is True
        assert deleter.calls == []
        busy.release.assert_not_awaited()
        assert mock_emit["sweep"].call_args[0][0].event_type == EventType.SWEEP_SKIPPED

    @pytest.mark.asyncio
    async def test_releases_lock_after_run(self, sweep, free_lock):
        await sweep.run_sweep(now=NOW)

        free_lock.acquire.assert_awaited_once()
        free_lock.release.assert_awaited_once()


# ── Scheduled entry point ────────────────────────────────────────────


class TestPurgeUsersJob:
    @pytest.mark.asyncio
    async def test_returns_result(self):
        expected = SweepResult(matched=1)
        with patch("userpurge.purge.sweep.purge_sweep") as mock_sweep:
            mock_sweep.run_sweep = AsyncMock(return_value=expected)
            assert await purge_users() is expected

    @pytest.mark.asyncio
    async def test_storage_error_is_contained(self):
        with patch("userpurge.purge.sweep.purge_sweep") as mock_sweep:
            mock_sweep.run_sweep = AsyncMock(side_effect=StorageError("down"))
            assert await purge_users() is None


class TestSweepResult:
    def test_summary_is_json_friendly(self):
        user_id = uuid.uuid4()
        result = SweepResult(
            retention_days=10,
            threshold=NOW,
            matched=2,
            deleted=[uuid.uuid4()],
            failed={user_id: "boom"},
        )

        summary = result.summary()

        assert summary["deleted"] == 1
        assert summary["threshold"] == NOW.isoformat()
        assert summary["failed"] == {str(user_id): "boom"}
