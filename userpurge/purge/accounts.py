"""Account deletion service — removes user accounts for the sweep.

Each deletion runs in its own transaction. The database cascades the delete
to the user's inactivity record.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import delete

from userpurge.db.engine import async_session_factory
from userpurge.models.user import User
from userpurge.purge.errors import DATABASE_ERRORS, DeletionError

logger = logging.getLogger(__name__)


class AccountDeletionService:
    """Deletes user accounts by id."""

    async def delete_user(self, user_id: uuid.UUID) -> bool:
        """Delete a user account.

        Returns:
            True if the account was deleted, False if it no longer existed.

        Raises:
            DeletionError: The database rejected the delete.
        """
        try:
            async with async_session_factory() as db:
                result = await db.execute(delete(User).where(User.id == user_id))
                await db.commit()
        except DATABASE_ERRORS as exc:
            raise DeletionError(user_id, str(exc)) from exc

        if not result.rowcount:  # type: ignore[attr-defined]
            logger.debug("User %s already deleted", user_id)
            return False

        logger.info("Deleted user %s", user_id)
        return True


# Module-level singleton
account_deleter = AccountDeletionService()
