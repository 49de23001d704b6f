from __future__ import annotations

from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from order_tracker.config import Config
from order_tracker.db import connect
from order_tracker.errors import AuthenticationError, AuthorizationError

from .crud import ensure_login_allowed, get_user_by_id, public_user
from .security import decode_access_token


_bearer = HTTPBearer(auto_error=False)


def get_config(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise HTTPException(status_code=500, detail="server_config_missing")
    return cfg


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    """Authenticate a request.

    The browser client sends the httpOnly `token` cookie set by /api/auth/login.
    `Authorization: Bearer <jwt>` is accepted too, for scripts and API clients.

    The token only proves who the caller was at login time; the user row is
    re-read on every request so deleted or un-approved accounts lose access.
    """

    token: str | None = request.cookies.get(cfg.AUTH_COOKIE_NAME)
    if not token and credentials is not None and credentials.credentials:
        token = credentials.credentials

    if not token:
        raise AuthenticationError("missing_token", "Access token required")

    try:
        payload = decode_access_token(token=token, secret=cfg.AUTH_JWT_SECRET)
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("token_expired", "Session expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("token_invalid", "Invalid token")

    try:
        user_id = int(payload.get("userId"))
    except (TypeError, ValueError):
        raise AuthenticationError("token_invalid", "Invalid token")

    with connect(cfg.DB_DSN) as conn:
        row = get_user_by_id(conn, user_id)
        if row is None:
            raise AuthenticationError("user_not_found", "Invalid token")
        ensure_login_allowed(row)
        user = public_user(row)

    user["isAdmin"] = user["role"] == "admin"
    request.state.user = user
    return user


def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get("role") != "admin":
        raise AuthorizationError("admin_required", "Administrator access required")
    return user
