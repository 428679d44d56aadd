"""Admin API — purge settings, tracked users, and manual actions.

JSON endpoints backing the settings panel: read the current settings,
update them, inspect tracked users, preserve a user, and run a sweep.
All routes require HTTP Basic Auth via verify_admin dependency.
"""
# ruff: noqa: B008

from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from userpurge.admin.auth import verify_admin
from userpurge.admin.events import emit
from userpurge.admin.queries import get_tracked_users, resolve_user_id
from userpurge.db.engine import get_session
from userpurge.directory.service import UnknownRoleError, UnknownUserError, user_directory
from userpurge.purge.errors import StorageError
from userpurge.purge.options import options
from userpurge.purge.store import InactivityStore
from userpurge.purge.sweep import purge_sweep
from userpurge.schemas.events import EventType, SystemEvent
from userpurge.schemas.settings import (
    PurgeSettingsResponse,
    PurgeSettingsUpdate,
    RoleAssignment,
    StatusResponse,
    SweepSummary,
    TrackedUser,
    TrackedUsersPage,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

PER_PAGE = 25


def _failed(status_code: int) -> JSONResponse:
    return JSONResponse({"status": "failed"}, status_code=status_code)


async def _emit_access(admin: str, action: str) -> None:
    """Emit ADMIN_ACCESS audit event for each admin call."""
    await emit(SystemEvent(
        event_type=EventType.ADMIN_ACCESS,
        actor_id=admin,
        actor_role="admin",
        data={"action": action, "interface": "api"},
        source_module="admin.web",
    ))


# ── Settings ─────────────────────────────────────────────────────────


@router.get("/settings", response_model=PurgeSettingsResponse)
async def get_settings(
    db: AsyncSession = Depends(get_session),
    admin: str = Depends(verify_admin),
) -> PurgeSettingsResponse | JSONResponse:
    """Current retention period, inactive roles, and all editable roles."""
    await _emit_access(admin, "get_settings")

    try:
        inactive_time_days = await options.inactive_time_days(db)
        inactive_roles = await options.inactive_user_roles(db)
        all_roles = await user_directory.editable_roles(db)
    except StorageError:
        logger.exception("Could not read purge settings")
        await db.rollback()
        return _failed(503)

    return PurgeSettingsResponse(
        status="OK",
        inactive_time_days=inactive_time_days,
        all_roles=all_roles,
        inactive_roles=inactive_roles,
    )


@router.post("/settings", response_model=StatusResponse)
async def update_settings(
    body: PurgeSettingsUpdate,
    db: AsyncSession = Depends(get_session),
    admin: str = Depends(verify_admin),
) -> StatusResponse | JSONResponse:
    """Store a new retention period and inactive-role set.

    Role ids that are not editable roles are silently dropped.
    """
    await _emit_access(admin, "update_settings")

    try:
        editable = await user_directory.editable_roles(db)
        inactive_roles = [role for role in body.inactive_roles if role in editable]
        await options.set_inactive_time_days(db, body.inactive_time_days)
        await options.set_inactive_user_roles(db, inactive_roles)
    except StorageError:
        logger.exception("Could not save purge settings")
        await db.rollback()
        return _failed(503)

    await emit(SystemEvent(
        event_type=EventType.SETTINGS_UPDATED,
        actor_id=admin,
        actor_role="admin",
        data={
            "inactive_time_days": body.inactive_time_days,
            "inactive_roles": inactive_roles,
            "dropped_roles": [role for role in body.inactive_roles if role not in editable],
        },
        source_module="admin.web",
    ))

    logger.info("Purge settings updated by %s: days=%d roles=%s", admin, body.inactive_time_days, inactive_roles)
    return StatusResponse(status="OK")


# ── Tracked users ────────────────────────────────────────────────────


@router.get("/tracked", response_model=TrackedUsersPage)
async def tracked_users(
    page: int = Query(1, ge=1),
    db: AsyncSession = Depends(get_session),
    admin: str = Depends(verify_admin),
) -> TrackedUsersPage | JSONResponse:
    """Paginated list of users pending purge eligibility."""
    await _emit_access(admin, "tracked_users")

    try:
        retention_days = await options.inactive_time_days(db)
        rows, total = await get_tracked_users(db, retention_days, page=page, per_page=PER_PAGE)
    except StorageError:
        logger.exception("Could not list tracked users")
        await db.rollback()
        return _failed(503)
    total_pages = max(1, (total + PER_PAGE - 1) // PER_PAGE)

    return TrackedUsersPage(
        users=[TrackedUser(**row) for row in rows],
        total=total,
        page=page,
        total_pages=total_pages,
    )


async def _set_preserved(db: AsyncSession, admin: str, user_id: str, preserve: bool) -> StatusResponse | JSONResponse:
    user_uuid = resolve_user_id(user_id)
    if user_uuid is None:
        return _failed(404)

    changed_at = None if preserve else datetime.now(UTC)
    try:
        found = await InactivityStore(db).set_changed_at(user_uuid, changed_at)
    except StorageError:
        logger.exception("Could not update inactivity record for %s", user_uuid)
        await db.rollback()
        return _failed(503)
    if not found:
        return _failed(404)

    await emit(SystemEvent(
        event_type=EventType.INACTIVITY_PRESERVED if preserve else EventType.INACTIVITY_RELEASED,
        user_id=user_uuid,
        actor_id=admin,
        actor_role="admin",
        source_module="admin.web",
    ))
    return StatusResponse(status="OK")


@router.post("/tracked/{user_id}/preserve", response_model=StatusResponse)
async def preserve_user(
    user_id: str,
    db: AsyncSession = Depends(get_session),
    admin: str = Depends(verify_admin),
) -> StatusResponse | JSONResponse:
    """Exempt a tracked user from purging."""
    await _emit_access(admin, "preserve_user")
    return await _set_preserved(db, admin, user_id, preserve=True)


@router.delete("/tracked/{user_id}/preserve", response_model=StatusResponse)
async def release_user(
    user_id: str,
    db: AsyncSession = Depends(get_session),
    admin: str = Depends(verify_admin),
) -> StatusResponse | JSONResponse:
    """Lift the exemption; the purge clock restarts now."""
    await _emit_access(admin, "release_user")
    return await _set_preserved(db, admin, user_id, preserve=False)


# ── Actions ──────────────────────────────────────────────────────────


@router.post("/users/{user_id}/role", response_model=StatusResponse)
async def assign_role(
    user_id: str,
    body: RoleAssignment,
    db: AsyncSession = Depends(get_session),
    admin: str = Depends(verify_admin),
) -> StatusResponse | JSONResponse:
    """Assign a role through the user directory (tracker is notified)."""
    await _emit_access(admin, "assign_role")

    user_uuid = resolve_user_id(user_id)
    if user_uuid is None:
        return _failed(404)

    try:
        await user_directory.set_role(db, user_uuid, body.role, actor_id=admin)
    except (UnknownUserError, UnknownRoleError):
        return _failed(404)
    except StorageError:
        logger.exception("Role change for %s not tracked", user_uuid)
        await db.rollback()
        return _failed(503)

    return StatusResponse(status="OK")


@router.post("/sweep", response_model=SweepSummary)
async def run_sweep_now(
    admin: str = Depends(verify_admin),
) -> SweepSummary | JSONResponse:
    """Run a purge sweep immediately."""
    await _emit_access(admin, "run_sweep")

    try:
        result = await purge_sweep.run_sweep()
    except StorageError:
        return _failed(503)

    return SweepSummary(status="OK", result=result.summary())


@router.delete("/settings", response_model=StatusResponse)
async def reset_settings(
    db: AsyncSession = Depends(get_session),
    admin: str = Depends(verify_admin),
) -> StatusResponse | JSONResponse:
    """Remove every stored option; defaults apply until settings are saved again."""
    await _emit_access(admin, "reset_settings")

    try:
        await options.uninstall(db)
    except StorageError:
        logger.exception("Could not reset purge settings")
        await db.rollback()
        return _failed(503)

    return StatusResponse(status="OK")
