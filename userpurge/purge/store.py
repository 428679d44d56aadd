"""InactivityStore — persistence for inactivity records.

Every method is a single statement, so each read or write is atomic on its
own. No transaction spans a tracker update and a sweep.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Delete, Select, delete, select, update
from sqlalchemy.dialects.postgresql import Insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from userpurge.models.inactivity import InactivityRecord
from userpurge.purge.errors import DATABASE_ERRORS, StorageError


# ── Statement builders ───────────────────────────────────────────────


def upsert_statement(user_id: uuid.UUID, changed_at: datetime | None) -> Insert:
    """INSERT ... ON CONFLICT (user_id) DO UPDATE SET changed_at."""
    return (
        pg_insert(InactivityRecord)
        .values(user_id=user_id, changed_at=changed_at)
        .on_conflict_do_update(
            index_elements=[InactivityRecord.user_id],
            set_={"changed_at": changed_at},
        )
    )


def remove_statement(user_id: uuid.UUID) -> Delete:
    return delete(InactivityRecord).where(InactivityRecord.user_id == user_id)


def expired_query(threshold: datetime) -> Select:
    """Users inactive since before `threshold`. Preserved rows (NULL) never match."""
    return select(InactivityRecord.user_id).where(
        InactivityRecord.changed_at.isnot(None),
        InactivityRecord.changed_at < threshold,
    )


# ── Store ────────────────────────────────────────────────────────────


class InactivityStore:
    """Reads and writes inactivity records through an AsyncSession."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def upsert(self, user_id: uuid.UUID, changed_at: datetime | None) -> None:
        """Create the record or overwrite its timestamp."""
        try:
            await self.db.execute(upsert_statement(user_id, changed_at))
        except DATABASE_ERRORS as exc:
            raise StorageError(f"Could not write inactivity record for {user_id}") from exc

    async def remove(self, user_id: uuid.UUID) -> bool:
        """Delete the record if present. Returns True if a row was removed."""
        try:
            result = await self.db.execute(remove_statement(user_id))
        except DATABASE_ERRORS as exc:
            raise StorageError(f"Could not delete inactivity record for {user_id}") from exc
        return bool(result.rowcount)  # type: ignore[attr-defined]

    async def set_changed_at(self, user_id: uuid.UUID, changed_at: datetime | None) -> bool:
        """Overwrite the timestamp of an existing record. Returns False if untracked."""
        try:
            result = await self.db.execute(
                update(InactivityRecord)
                .where(InactivityRecord.user_id == user_id)
                .values(changed_at=changed_at)
            )
        except DATABASE_ERRORS as exc:
            raise StorageError(f"Could not update inactivity record for {user_id}") from exc
        return bool(result.rowcount)  # type: ignore[attr-defined]

    async def expired_user_ids(self, threshold: datetime) -> list[uuid.UUID]:
        """Snapshot of user ids eligible for purging at `threshold`."""
        try:
            result = await self.db.execute(expired_query(threshold))
        except DATABASE_ERRORS as exc:
            raise StorageError("Could not select expired inactivity records") from exc
        return [row[0] for row in result.all()]

