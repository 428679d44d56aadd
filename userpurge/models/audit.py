"""`audit_log`: what happened to which user, and who caused it.

One row per emitted `SystemEvent`. Purge events are the reason the table
exists: once a sweep deletes an account, this is the only record left of it.
Rows are only ever inserted.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from userpurge.models.base import Base, TimestampMixin


class AuditLog(TimestampMixin, Base):
    """A single recorded event (role change, purge, settings edit, sweep)."""

    __tablename__ = "audit_log"

    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # Plain column, not a FK to users: it has to outlive the account
    user_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), index=True)
    actor_id: Mapped[str | None] = mapped_column(String(100), comment="Admin username, hook caller or 'system'")
    actor_role: Mapped[str | None] = mapped_column(String(50), comment="admin, hook, system")

    # Retention days, old/new roles, sweep counts
    data: Mapped[dict[str, Any] | None] = mapped_column(JSONB)

    def __repr__(self) -> str:
        return f"<AuditLog {self.event_type} user={self.user_id}>"
