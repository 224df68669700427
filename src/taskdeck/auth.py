from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from .settings import get_settings

_security = HTTPBasic(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Basic"},
    )


# PUBLIC_INTERFACE
async def get_current_user(
    creds: Optional[HTTPBasicCredentials] = Depends(_security),
    x_user_id: Optional[str] = Header(default=None),
) -> Optional[str]:
    """
    Resolve the caller's user id, or None for an anonymous caller.

    Behavior:
    - If settings.enable_basic_auth is False (default): the user id comes from
      the X-User-Id header set by the fronting identity provider. Without the
      header the caller is anonymous.
    - If True: credentials are checked against BASIC_AUTH_USERNAME/BASIC_AUTH_PASSWORD
      and the username is the user id. Missing or invalid credentials raise
      401 with WWW-Authenticate: Basic.

    Usage:
        from .auth import get_current_user
        def handler(user_id: Optional[str] = Depends(get_current_user)): ...
    """
    settings = get_settings()

    if not settings.enable_basic_auth:
        if x_user_id is None or not x_user_id.strip():
            return None
        return x_user_id.strip()

    if creds is None or creds.username is None or creds.password is None:
        raise _unauthorized("Not authenticated")

    expected_user = settings.basic_auth_username
    expected_pass = settings.basic_auth_password
    if expected_user is None or expected_pass is None:
        # Misconfiguration: auth enabled but username/password not provided
        raise _unauthorized("Server authentication not configured")

    user_ok = secrets.compare_digest(creds.username, expected_user)
    pass_ok = secrets.compare_digest(creds.password, expected_pass)
    if not (user_ok and pass_ok):
        raise _unauthorized("Invalid authentication credentials")
    return creds.username
