"""Options — typed access to the service's stored configuration.

Values live in the `options` table under a common prefix. Malformed values
never break a caller: the typed accessors log a warning and fall back to
their documented defaults.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy import delete, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from userpurge.config import settings
from userpurge.models.option import Option
from userpurge.purge.errors import DATABASE_ERRORS, ConfigurationError, StorageError

logger = logging.getLogger(__name__)

INACTIVE_TIME_DAYS = "inactive_time_days"
INACTIVE_ROLES = "inactive_roles"
VERSION = "version"


def parse_inactive_time_days(raw: Any) -> int:
    """Coerce a stored retention value to a non-negative day count."""
    if isinstance(raw, bool):
        raise ConfigurationError(f"Retention must be an integer, got {raw!r}")
    if isinstance(raw, int):
        days = raw
    elif isinstance(raw, str) and raw.strip().isdigit():
        days = int(raw.strip())
    else:
        raise ConfigurationError(f"Retention must be an integer, got {raw!r}")
    if days < 0:
        raise ConfigurationError(f"Retention must be non-negative, got {days}")
    return days


def parse_inactive_roles(raw: Any) -> list[str]:
    """Coerce a stored role list, accepting the legacy JSON-string encoding."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise ConfigurationError(f"Inactive roles are not valid JSON: {raw!r}") from exc
    if not isinstance(raw, list) or not all(isinstance(role, str) for role in raw):
        raise ConfigurationError(f"Inactive roles must be a list of role ids, got {raw!r}")
    # dict.fromkeys keeps first-seen order
    return list(dict.fromkeys(raw))


class Options:
    """Stateless option operations — AsyncSession passed per call."""

    def __init__(
        self,
        options_prefix: str | None = None,
        default_inactive_time_days: int | None = None,
    ) -> None:
        self.options_prefix = f"{options_prefix or settings.purge.options_prefix}_"
        if default_inactive_time_days is None:
            default_inactive_time_days = settings.purge.default_inactive_time_days
        self.default_inactive_time_days = default_inactive_time_days

    # ── Typed accessors ──────────────────────────────────────────────

    async def inactive_time_days(self, db: AsyncSession) -> int:
        """Retention period in days; the default when unset or malformed."""
        raw = await self.get_option(db, INACTIVE_TIME_DAYS, self.default_inactive_time_days)
        try:
            return parse_inactive_time_days(raw)
        except ConfigurationError as exc:
            logger.warning("%s — using default of %d days", exc, self.default_inactive_time_days)
            return self.default_inactive_time_days

    async def set_inactive_time_days(self, db: AsyncSession, days: int) -> None:
        await self.update_option(db, INACTIVE_TIME_DAYS, parse_inactive_time_days(days))

    async def inactive_user_roles(self, db: AsyncSession) -> list[str]:
        """Role ids whose holders are tracked for purging; empty when unset or malformed."""
        raw = await self.get_option(db, INACTIVE_ROLES, [])
        try:
            return parse_inactive_roles(raw)
        except ConfigurationError as exc:
            logger.warning("%s — treating no roles as inactive", exc)
            return []

    async def set_inactive_user_roles(self, db: AsyncSession, roles: list[str]) -> None:
        await self.update_option(db, INACTIVE_ROLES, parse_inactive_roles(list(roles)))

    async def version(self, db: AsyncSession) -> str | None:
        return await self.get_option(db, VERSION, None)

    async def set_version(self, db: AsyncSession, version: str) -> None:
        await self.update_option(db, VERSION, version)

    async def uninstall(self, db: AsyncSession) -> None:
        """Remove every option this service owns."""
        for option in (INACTIVE_TIME_DAYS, INACTIVE_ROLES, VERSION):
            await self.delete_option(db, option)
        logger.info("Removed options with prefix %s", self.options_prefix)

    # ── Raw key/value access ─────────────────────────────────────────

    def _name(self, option: str) -> str:
        return self.options_prefix + option

    async def get_option(self, db: AsyncSession, option: str, default: Any = None) -> Any:
        """Return the stored value, or `default` when the option is unset."""
        try:
            row = await db.get(Option, self._name(option))
        except DATABASE_ERRORS as exc:
            raise StorageError(f"Could not read option {self._name(option)}") from exc
        if row is None:
            return default
        return row.value

    async def update_option(self, db: AsyncSession, option: str, value: Any) -> None:
        """Insert or overwrite an option value."""
        name = self._name(option)
        stmt = (
            pg_insert(Option)
            .values(name=name, value=value)
            .on_conflict_do_update(
                index_elements=[Option.name],
                set_={"value": value, "updated_at": func.now()},
            )
        )
        try:
            await db.execute(stmt)
        except DATABASE_ERRORS as exc:
            raise StorageError(f"Could not write option {name}") from exc
        logger.debug("Option updated: %s=%r", name, value)

    async def delete_option(self, db: AsyncSession, option: str) -> bool:
        """Delete an option. Returns True if it existed."""
        try:
            result = await db.execute(delete(Option).where(Option.name == self._name(option)))
        except DATABASE_ERRORS as exc:
            raise StorageError(f"Could not delete option {self._name(option)}") from exc
        return bool(result.rowcount)  # type: ignore[attr-defined]


# Module-level singleton
options = Options()
