"""Audit trail writer.

`main` subscribes `audit_on_event` to every event type at start-up, so role
changes, settings edits, sweeps and each purged account land in `audit_log`.
A write uses its own session: it must not share the transaction of the
request or deletion that emitted the event.
"""

from __future__ import annotations

import logging

from userpurge.db.engine import async_session_factory
from userpurge.models.audit import AuditLog
from userpurge.schemas.events import SystemEvent

logger = logging.getLogger(__name__)


def _to_row(event: SystemEvent) -> AuditLog:
    return AuditLog(
        event_type=event.event_type.value,
        user_id=event.user_id,
        actor_id=event.actor_id,
        actor_role=event.actor_role,
        data=event.data,
    )


async def audit_on_event(event: SystemEvent) -> None:
    """Persist `event`. Errors are logged here and not re-raised.

    The event bus already isolates handlers; catching here keeps the log
    line specific about which event and user were lost.
    """
    try:
        async with async_session_factory() as db:
            db.add(_to_row(event))
            await db.commit()
    except Exception:
        logger.exception("Audit write lost for %s (user=%s)", event.event_type.value, event.user_id)
