"""User model — an account in the user directory.

Deleting a user cascades to its inactivity record (ON DELETE CASCADE).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from userpurge.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from userpurge.models.inactivity import InactivityRecord


class User(TimestampMixin, Base):
    """A user account whose role is tracked for purge eligibility."""

    __tablename__ = "users"

    login: Mapped[str] = mapped_column(String(60), unique=True, nullable=False, index=True)
    email: Mapped[str | None] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Relationships
    inactivity: Mapped[InactivityRecord | None] = relationship(
        "InactivityRecord",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
        uselist=False,
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} login={self.login} role={self.role}>"
