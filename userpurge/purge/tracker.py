"""Role-change tracker — records when users enter an inactive role.

Called once per role assignment. Moving into an inactive role (re)starts the
user's purge clock; moving to any other role drops the record. The write is
not retried here: role-change notifications are fire-and-forget, so a
StorageError goes back to whoever delivered the notification.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from userpurge.admin.events import emit
from userpurge.purge.options import Options, options
from userpurge.purge.store import InactivityStore
from userpurge.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)


class RoleChangeTracker:
    """Maintains the inactivity record of a user on each role change."""

    def __init__(self, opts: Options | None = None) -> None:
        self.options = opts or options

    async def on_role_changed(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        new_role: str,
        old_roles: list[str] | None = None,
        *,
        now: datetime | None = None,
        actor_id: str = "system",
    ) -> bool:
        """Upsert or delete the user's inactivity record.

        Args:
            db: Database session. The caller owns the transaction.
            user_id: The user whose role changed.
            new_role: The role the user was assigned to.
            old_roles: Roles held before the change (reporting only).
            now: Event time; defaults to the current time.
            actor_id: Who triggered the change, for the audit trail.

        Returns:
            True if the user is now tracked, False if not.

        Raises:
            StorageError: The record could not be written.
        """
        inactive_roles = await self.options.inactive_user_roles(db)
        store = InactivityStore(db)

        if new_role in inactive_roles:
            changed_at = now or datetime.now(UTC)
            await store.upsert(user_id, changed_at)

            await emit(SystemEvent(
                event_type=EventType.INACTIVITY_TRACKED,
                user_id=user_id,
                actor_id=actor_id,
                data={
                    "new_role": new_role,
                    "old_roles": list(old_roles or []),
                    "changed_at": changed_at.isoformat(),
                },
                source_module="purge.tracker",
            ))
            logger.info("User %s entered inactive role %s", user_id, new_role)
            return True

        removed = await store.remove(user_id)
        if removed:
            await emit(SystemEvent(
                event_type=EventType.INACTIVITY_CLEARED,
                user_id=user_id,
                actor_id=actor_id,
                data={"new_role": new_role, "old_roles": list(old_roles or [])},
                source_module="purge.tracker",
            ))
            logger.info("User %s left the inactive roles (now %s)", user_id, new_role)
        return False


# Module-level singleton
role_change_tracker = RoleChangeTracker()
