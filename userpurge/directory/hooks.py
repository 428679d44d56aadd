"""Role-change hook — lets an external user directory report role changes."""
# ruff: noqa: B008

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from userpurge.admin.auth import verify_hook_token
from userpurge.db.engine import get_session
from userpurge.models.user import User
from userpurge.purge.errors import DATABASE_ERRORS, StorageError
from userpurge.purge.tracker import role_change_tracker
from userpurge.schemas.settings import RoleChangeNotification, StatusResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/hooks", tags=["hooks"])


@router.post("/role-changed", response_model=StatusResponse)
async def role_changed(
    body: RoleChangeNotification,
    db: AsyncSession = Depends(get_session),
    caller: str = Depends(verify_hook_token),
) -> StatusResponse | JSONResponse:
    """Apply one role-change notification.

    404 for a user this service does not know (retrying cannot help);
    503 when storage is unavailable and the sender may retry.
    """
    try:
        if await db.get(User, body.user_id) is None:
            return JSONResponse({"status": "failed"}, status_code=404)
        await role_change_tracker.on_role_changed(
            db,
            body.user_id,
            body.new_role,
            body.old_roles,
            actor_id=caller,
        )
    except DATABASE_ERRORS + (StorageError,):
        logger.exception("Role change for %s not tracked", body.user_id)
        await db.rollback()
        return JSONResponse({"status": "failed"}, status_code=503)

    return StatusResponse(status="OK")
