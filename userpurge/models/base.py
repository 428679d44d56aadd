"""Declarative base for the userpurge tables.

`User` and `AuditLog` carry a surrogate UUID key and creation/update stamps
through `TimestampMixin`. Roles, options and the purge list are keyed by
their natural ids (slug, option name, user id) and skip it.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Owner of the metadata that `init_db` and the migration build from."""


class TimestampMixin:
    """UUID primary key plus `created_at`/`updated_at`.

    Postgres fills all three when the ORM leaves them unset, so rows written
    by the migration or by external tools look the same as ours.
    """

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=func.gen_random_uuid(),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
