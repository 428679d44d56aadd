"""Authentication for the admin routes and the role-change hook.

Admin routes use HTTP Basic Auth with a single shared password from
ADMIN_WEB_PASSWORD. Hook deliveries carry HOOK_TOKEN in X-Hook-Token.
"""

from __future__ import annotations

import secrets

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from userpurge.config import settings

security = HTTPBasic()


def _matches(supplied: str, expected: str) -> bool:
    return secrets.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


async def verify_admin(
    credentials: HTTPBasicCredentials = Depends(security),  # noqa: B008
) -> str:
    """FastAPI dependency — verify HTTP Basic credentials.

    Returns the username on success, raises 401 on failure.
    """
    expected = settings.security.admin_web_password
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="ADMIN_WEB_PASSWORD not configured",
        )

    # Any username is accepted (single shared password)
    if not _matches(credentials.password, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


async def verify_hook_token(x_hook_token: str = Header(default="")) -> str:
    """FastAPI dependency — verify the shared hook token."""
    expected = settings.security.hook_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="HOOK_TOKEN not configured",
        )
    if not _matches(x_hook_token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid hook token",
        )
    return "hook"
