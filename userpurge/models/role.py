"""Role model — the role catalogue of the user directory."""

from __future__ import annotations

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from userpurge.models.base import Base

# Seeded by the initial migration and by init_db on an empty table
DEFAULT_ROLES: list[dict[str, str | bool]] = [
    {"slug": "administrator", "name": "Administrator", "editable": True},
    {"slug": "editor", "name": "Editor", "editable": True},
    {"slug": "author", "name": "Author", "editable": True},
    {"slug": "contributor", "name": "Contributor", "editable": True},
    {"slug": "subscriber", "name": "Subscriber", "editable": True},
]


class Role(Base):
    """A role users can hold. Only editable roles are offered in settings."""

    __tablename__ = "roles"

    slug: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    editable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Role slug={self.slug} editable={self.editable}>"
