"""Purge sweep — deletes users that stayed in an inactive role too long.

Runs on a timer (see scheduling.scheduler). Each run:

1. computes threshold = now - retention_days,
2. selects tracked users with a set timestamp older than the threshold,
3. deletes each account; the database cascades to the tracking row.

A failed selection aborts the run and the next scheduled run tries again.
A failed or stuck deletion only affects that user. Running the sweep twice
in a row is harmless: the second run finds nothing left to delete.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from userpurge.admin.events import emit
from userpurge.config import settings
from userpurge.db.engine import async_session_factory, redis_client
from userpurge.purge.accounts import AccountDeletionService, account_deleter
from userpurge.purge.errors import ConfigurationError, DeletionError, StorageError
from userpurge.purge.lock import SweepLock
from userpurge.purge.options import Options, options
from userpurge.purge.store import InactivityStore
from userpurge.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def compute_threshold(now: datetime, retention_days: int) -> datetime:
    """Records changed strictly before this instant are eligible."""
    if retention_days < 0:
        raise ConfigurationError(f"Retention must be non-negative, got {retention_days}")
    return now - timedelta(seconds=retention_days * SECONDS_PER_DAY)


@dataclass
class SweepResult:
    """Summary of one sweep run."""

    skipped: bool = False
    retention_days: int | None = None
    threshold: datetime | None = None
    matched: int = 0
    deleted: list[uuid.UUID] = field(default_factory=list)
    already_gone: list[uuid.UUID] = field(default_factory=list)
    failed: dict[uuid.UUID, str] = field(default_factory=dict)

    def summary(self) -> dict[str, Any]:
        return {
            "skipped": self.skipped,
            "retention_days": self.retention_days,
            "threshold": self.threshold.isoformat() if self.threshold else None,
            "matched": self.matched,
            "deleted": len(self.deleted),
            "already_gone": len(self.already_gone),
            "failed": {str(user_id): reason for user_id, reason in self.failed.items()},
        }


class PurgeSweep:
    """Periodic batch that deletes purge-eligible users."""

    def __init__(
        self,
        opts: Options | None = None,
        deleter: AccountDeletionService | None = None,
        lock: SweepLock | None = None,
        deletion_timeout: float | None = None,
    ) -> None:
        self.options = opts or options
        self.deleter = deleter or account_deleter
        self.lock = lock or SweepLock(
            redis_client,
            settings.purge.sweep_lock_key,
            settings.purge.sweep_lock_ttl_seconds,
        )
        self.deletion_timeout = deletion_timeout or settings.purge.deletion_timeout_seconds

    async def run_sweep(
        self,
        now: datetime | None = None,
        retention_days: int | None = None,
    ) -> SweepResult:
        """Run one sweep.

        Args:
            now: Reference time; defaults to the current time.
            retention_days: Overrides the stored retention period.

        Raises:
            StorageError: The candidate list could not be read.
        """
        if not await self.lock.acquire():
            await emit(SystemEvent(
                event_type=EventType.SWEEP_SKIPPED,
                data={"reason": "sweep already running"},
                source_module="purge.sweep",
            ))
            return SweepResult(skipped=True)

        try:
            return await self._sweep(now or datetime.now(UTC), retention_days)
        finally:
            await self.lock.release()

    async def _sweep(self, now: datetime, retention_days: int | None) -> SweepResult:
        result = SweepResult()

        try:
            async with async_session_factory() as db:
                if retention_days is None:
                    retention_days = await self.options.inactive_time_days(db)
                threshold = compute_threshold(now, retention_days)
                user_ids = await InactivityStore(db).expired_user_ids(threshold)
        except StorageError as exc:
            logger.exception("Purge sweep aborted: could not read candidates")
            await emit(SystemEvent(
                event_type=EventType.SWEEP_FAILED,
                data={"error": str(exc)},
                source_module="purge.sweep",
            ))
            raise

        result.retention_days = retention_days
        result.threshold = threshold
        result.matched = len(user_ids)

        for user_id in user_ids:
            await self._purge_user(user_id, result)

        await emit(SystemEvent(
            event_type=EventType.SWEEP_COMPLETED,
            data=result.summary(),
            source_module="purge.sweep",
        ))

        logger.info(
            "Purge sweep complete: matched=%d deleted=%d already_gone=%d failed=%d (threshold=%s)",
            result.matched,
            len(result.deleted),
            len(result.already_gone),
            len(result.failed),
            threshold.isoformat(),
        )
        return result

    async def _purge_user(self, user_id: uuid.UUID, result: SweepResult) -> None:
        """Delete one account under a deadline, recording the outcome."""
        try:
            deleted = await asyncio.wait_for(
                self.deleter.delete_user(user_id),
                timeout=self.deletion_timeout,
            )
        except TimeoutError:
            reason = f"timed out after {self.deletion_timeout}s"
            logger.warning("Purge of user %s %s", user_id, reason)
        except DeletionError as exc:
            reason = exc.reason
            logger.warning("Purge of user %s failed: %s", user_id, reason)
        except Exception as exc:
            reason = str(exc) or type(exc).__name__
            logger.exception("Purge of user %s failed unexpectedly", user_id)
        else:
            if deleted:
                result.deleted.append(user_id)
                await emit(SystemEvent(
                    event_type=EventType.USER_PURGED,
                    user_id=user_id,
                    actor_id="system",
                    actor_role="system",
                    data={"retention_days": result.retention_days},
                    source_module="purge.sweep",
                ))
            else:
                result.already_gone.append(user_id)
            return

        result.failed[user_id] = reason
        await emit(SystemEvent(
            event_type=EventType.USER_PURGE_FAILED,
            user_id=user_id,
            data={"error": reason},
            source_module="purge.sweep",
        ))


# Module-level singleton
purge_sweep = PurgeSweep()


async def purge_users() -> SweepResult | None:
    """Scheduled job entry point.

    Returns None when the run was aborted; the failure is already logged
    and the next scheduled run retries.
    """
    try:
        return await purge_sweep.run_sweep()
    except StorageError:
        return None
