"""Database queries for the admin routes."""

from __future__ import annotations

import uuid
from datetime import timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from userpurge.models.inactivity import InactivityRecord
from userpurge.models.user import User
from userpurge.purge.errors import DATABASE_ERRORS, StorageError


def resolve_user_id(user_id: str) -> uuid.UUID | None:
    """Parse a user id path parameter."""
    try:
        return uuid.UUID(user_id)
    except ValueError:
        return None


async def get_tracked_users(
    db: AsyncSession,
    retention_days: int,
    page: int = 1,
    per_page: int = 25,
) -> tuple[list[dict[str, Any]], int]:
    """Tracked users, longest inactive first; preserved users last.

    Returns (rows, total) where each row carries the date the user becomes
    eligible for purging under `retention_days`.
    """
    try:
        total = (await db.execute(select(func.count()).select_from(InactivityRecord))).scalar() or 0
        result = await db.execute(
            select(InactivityRecord, User.login, User.role)
            .join(User, User.id == InactivityRecord.user_id)
            .order_by(InactivityRecord.changed_at.asc().nulls_last())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
    except DATABASE_ERRORS as exc:
        raise StorageError("Could not list tracked users") from exc

    retention = timedelta(days=retention_days)
    rows = [
        {
            "user_id": record.user_id,
            "login": login,
            "role": role,
            "changed_at": record.changed_at,
            "preserved": record.preserved,
            "eligible_at": record.changed_at + retention if record.changed_at else None,
        }
        for record, login, role in result.all()
    ]
    return rows, total
