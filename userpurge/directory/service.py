"""User directory — users, roles, and role assignment.

Assigning a role notifies the role-change tracker in the same transaction,
the way the host directory fires its role-change hook.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from userpurge.admin.events import emit
from userpurge.models.role import Role
from userpurge.models.user import User
from userpurge.purge.errors import DATABASE_ERRORS, StorageError
from userpurge.purge.tracker import RoleChangeTracker, role_change_tracker
from userpurge.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)


class UnknownUserError(LookupError):
    """No user with the given id."""


class UnknownRoleError(LookupError):
    """No role with the given slug."""


class UserDirectory:
    """Directory operations — AsyncSession passed per call."""

    def __init__(self, tracker: RoleChangeTracker | None = None) -> None:
        self.tracker = tracker or role_change_tracker

    async def editable_roles(self, db: AsyncSession) -> dict[str, str]:
        """All roles an admin may pick, as {slug: display name}."""
        try:
            result = await db.execute(
                select(Role).where(Role.editable.is_(True)).order_by(Role.name)
            )
        except DATABASE_ERRORS as exc:
            raise StorageError("Could not read roles") from exc
        return {role.slug: role.name for role in result.scalars().all()}

    async def set_role(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        new_role: str,
        actor_id: str = "system",
    ) -> User:
        """Assign `new_role` to a user and notify the tracker.

        Re-assigning the role a user already holds is a no-op and does not
        notify the tracker.

        Raises:
            UnknownUserError: No such user.
            UnknownRoleError: No such role.
            StorageError: The directory or the tracker could not be read or written.
        """
        try:
            user = await db.get(User, user_id)
            role = await db.get(Role, new_role)
        except DATABASE_ERRORS as exc:
            raise StorageError(f"Could not look up user {user_id}") from exc
        if user is None:
            raise UnknownUserError(f"User {user_id} not found")
        if role is None:
            raise UnknownRoleError(f"Role {new_role!r} not found")

        old_roles = [user.role]
        if user.role == new_role:
            return user

        user.role = new_role
        try:
            await db.flush()
        except DATABASE_ERRORS as exc:
            raise StorageError(f"Could not update role of user {user_id}") from exc

        await self.tracker.on_role_changed(db, user.id, new_role, old_roles, actor_id=actor_id)

        await emit(SystemEvent(
            event_type=EventType.ROLE_CHANGED,
            user_id=user.id,
            actor_id=actor_id,
            data={"new_role": new_role, "old_roles": old_roles},
            source_module="directory.service",
        ))

        logger.info("Role changed: user=%s %s -> %s", user.id, old_roles[0], new_role)
        return user


# Module-level singleton
user_directory = UserDirectory()
