"""
Shared web security helpers: CSRF double-submit and role gating.

CSRF:
    Non-API pages receive a `csrf_token` cookie readable by page scripts.
    State-changing non-API requests must echo it in `X-CSRF-Token`. `/api/`
    routes are exempt because they authenticate with a bearer token, which
    browsers never attach on their own.

Role gating:
    `require_role(...)` is a FastAPI dependency. It runs after the auth
    middleware has verified the token and resolved the role, and before the
    route handler body; a rejected caller never reaches the handler.
"""
from __future__ import annotations

from typing import Awaitable, Callable, Optional
import hmac
import logging
import secrets

from fastapi import Request, Response

from backend.identity_access.domain import AuthUser, valid_role
from backend.identity_access.errors import Forbidden, MissingAuth
from backend.web.auth_utils import cookie_opts

logger = logging.getLogger("rentwise.web")

CSRF_COOKIE_NAME = "csrf_token"
CSRF_HEADER_NAME = "x-csrf-token"
CSRF_MAX_AGE_SECONDS = 60 * 60
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


# --- CSRF ----------------------------------------------------------------------


def generate_csrf_token() -> str:
    return secrets.token_hex(32)


def set_csrf_cookie(response: Response, token: str, *, environment: str) -> None:
    opts = cookie_opts(environment)
    response.set_cookie(
        key=CSRF_COOKIE_NAME,
        value=token,
        httponly=False,  # page scripts must read it to echo the header
        secure=opts["secure"],
        samesite=opts["samesite"],
        path="/",
        max_age=CSRF_MAX_AGE_SECONDS,
    )


def is_api_path(path: str) -> bool:
    return path == "/api" or path.startswith("/api/")


def csrf_required(request: Request) -> bool:
    return request.method.upper() not in SAFE_METHODS and not is_api_path(request.url.path)


def csrf_valid(request: Request) -> bool:
    cookie_token = request.cookies.get(CSRF_COOKIE_NAME) or ""
    header_token = request.headers.get(CSRF_HEADER_NAME) or ""
    if not cookie_token or not header_token:
        return False
    return hmac.compare_digest(cookie_token, header_token)


# --- Role gating ---------------------------------------------------------------


def current_user(request: Request) -> AuthUser:
    user = getattr(request.state, "user", None)
    if not isinstance(user, AuthUser):
        raise MissingAuth("Authentication required")
    return user


def optional_user(request: Request) -> Optional[AuthUser]:
    user = getattr(request.state, "user", None)
    return user if isinstance(user, AuthUser) else None


def require_role(*roles: str) -> Callable[[Request], Awaitable[AuthUser]]:
    """Dependency factory: allow only callers whose resolved role is in `roles`."""
    allowed = frozenset(r for r in (valid_role(x) for x in roles) if r)
    if not allowed:
        raise ValueError("require_role needs at least one valid role")

    async def _dependency(request: Request) -> AuthUser:
        user = current_user(request)
        if user.role not in allowed:
            logger.info("Forbidden: role %s not in %s for %s", user.role, sorted(allowed), request.url.path)
            raise Forbidden()
        return user

    return _dependency


__all__ = [
    "CSRF_COOKIE_NAME",
    "CSRF_HEADER_NAME",
    "csrf_required",
    "csrf_valid",
    "current_user",
    "generate_csrf_token",
    "is_api_path",
    "optional_user",
    "require_role",
    "set_csrf_cookie",
]
