"""InactivityRecord model — users pending purge eligibility.

One row per user whose last observed role change placed them in an
inactive role. `changed_at` is NULL for users an admin has preserved;
those rows are never purged.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from userpurge.models.base import Base

if TYPE_CHECKING:
    from userpurge.models.user import User

INACTIVITY_TABLE = "purge_user_list"


class InactivityRecord(Base):
    """Last time a user became inactive, or NULL to preserve them."""

    __tablename__ = INACTIVITY_TABLE

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    changed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), index=True, comment="NULL = preserve, never purge"
    )

    # Relationships
    user: Mapped[User] = relationship("User", back_populates="inactivity")

    @property
    def preserved(self) -> bool:
        return self.changed_at is None

    def __repr__(self) -> str:
        return f"<InactivityRecord user={self.user_id} changed_at={self.changed_at}>"
