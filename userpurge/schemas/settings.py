"""Request and response bodies for the admin and hook endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class StatusResponse(BaseModel):
    status: Literal["OK", "failed"]


class PurgeSettingsResponse(StatusResponse):
    """Current settings plus the roles an admin can choose from."""

    inactive_time_days: int
    all_roles: dict[str, str]
    inactive_roles: list[str]


class PurgeSettingsUpdate(BaseModel):
    inactive_time_days: int = Field(ge=0, description="Retention period in days")
    inactive_roles: list[str] = Field(default_factory=list)


class RoleChangeNotification(BaseModel):
    """A role change reported by the user directory."""

    user_id: uuid.UUID
    new_role: str
    old_roles: list[str] = Field(default_factory=list)


class RoleAssignment(BaseModel):
    role: str


class TrackedUser(BaseModel):
    user_id: uuid.UUID
    login: str | None
    role: str | None
    changed_at: datetime | None
    preserved: bool
    eligible_at: datetime | None


class TrackedUsersPage(BaseModel):
    users: list[TrackedUser]
    total: int
    page: int
    total_pages: int


class SweepSummary(StatusResponse):
    result: dict[str, Any]
