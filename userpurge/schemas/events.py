"""SystemEvent schema — the event type that flows through the service.

Tracker, sweep and admin actions emit SystemEvents. The audit subscriber
consumes them asynchronously.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """All event types emitted by the system."""

    # Role tracking
    ROLE_CHANGED = "role.changed"
    INACTIVITY_TRACKED = "inactivity.tracked"
    INACTIVITY_CLEARED = "inactivity.cleared"
    INACTIVITY_PRESERVED = "inactivity.preserved"
    INACTIVITY_RELEASED = "inactivity.released"

    # Purge sweep
    SWEEP_COMPLETED = "sweep.completed"
    SWEEP_FAILED = "sweep.failed"
    SWEEP_SKIPPED = "sweep.skipped"
    USER_PURGED = "user.purged"
    USER_PURGE_FAILED = "user.purge_failed"

    # Admin
    ADMIN_ACCESS = "admin.access"
    SETTINGS_UPDATED = "admin.settings_updated"

    # System
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"


class SystemEvent(BaseModel):
    """Core event that flows through the service.

    Immutable once created. Consumed by the AuditLogger, which writes it
    to the audit_log table.
    """

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Context, when the event concerns a user
    user_id: uuid.UUID | None = None
    actor_id: str | None = None
    actor_role: str | None = None

    # Flexible payload
    data: dict[str, Any] = Field(default_factory=dict)

    # Metadata
    source_module: str | None = Field(default=None, description="Module that emitted this event")

    model_config = {"frozen": True}
