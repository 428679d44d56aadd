"""Exceptions raised by the purge components."""

from __future__ import annotations

from typing import Any

from sqlalchemy.exc import SQLAlchemyError

# asyncpg raises OSError subclasses (ConnectionRefusedError, socket.gaierror)
# on connect; SQLAlchemy does not wrap those
DATABASE_ERRORS: tuple[type[Exception], ...] = (SQLAlchemyError, OSError)


class PurgeError(Exception):
    """Base class for purge failures."""


class ConfigurationError(PurgeError, ValueError):
    """A stored option is missing or malformed."""


class StorageError(PurgeError):
    """A read or write against the persistent store failed."""


class DeletionError(PurgeError):
    """Deleting a single user account failed."""

    def __init__(self, user_id: Any, reason: str) -> None:
        super().__init__(f"Could not delete user {user_id}: {reason}")
        self.user_id = user_id
        self.reason = reason
