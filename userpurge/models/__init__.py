"""SQLAlchemy ORM models for userpurge.

Import all models here so Alembic and Base.metadata.create_all() discover them.
"""

from __future__ import annotations

from userpurge.models.audit import AuditLog
from userpurge.models.base import Base
from userpurge.models.inactivity import INACTIVITY_TABLE, InactivityRecord
from userpurge.models.option import Option
from userpurge.models.role import Role
from userpurge.models.user import User

__all__ = [
    # Base
    "Base",
    # Models
    "User",
    "Role",
    "InactivityRecord",
    "Option",
    "AuditLog",
    # Constants
    "INACTIVITY_TABLE",
]
