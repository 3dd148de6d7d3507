"""
Admin API routes: create managers, invite users, list profiles.

Why:
    These operations need the service credential, which only the server
    holds. The browser calls these endpoints with the admin's bearer token.

Permissions:
    Caller must have role `admin` (resolved server-side per request).
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from backend.identity_access.admin_client import AdminProvisioner
from backend.identity_access.directory import ProfileDirectory
from backend.identity_access.domain import AuthUser
from backend.web.models.schemas import CreateManagerPayload, InvitePayload
from backend.web.routes.security import require_role


admin_router = APIRouter(prefix="/api/admin", tags=["Admin"])


def _private_response(body: dict, *, status_code: int = 200) -> JSONResponse:
    return JSONResponse(body, status_code=status_code, headers={"Cache-Control": "private, no-store"})


def _provisioner(request: Request) -> AdminProvisioner:
    return request.app.state.provisioner


def _directory(request: Request) -> ProfileDirectory:
    return request.app.state.directory


@admin_router.post("/managers")
async def create_manager(
    request: Request,
    payload: CreateManagerPayload,
    _admin: AuthUser = Depends(require_role("admin")),
):
    """Create a manager identity plus profile and return a one-time password.

    Errors:
        - 500 when the service credential is not configured (nothing created)
        - 400 with the provider's message when either step fails
    """
    result = await _provisioner(request).create_manager(name=payload.name, email=payload.email, phone=payload.phone)
    return _private_response(
        {
            "message": "Manager created successfully",
            "userId": result.user_id,
            "email": result.email,
            "name": result.name,
            "tempPassword": result.temp_password,
        },
        status_code=201,
    )


@admin_router.post("/invite")
async def invite_user(
    request: Request,
    payload: InvitePayload,
    _admin: AuthUser = Depends(require_role("admin")),
):
    result = await _provisioner(request).invite_user(email=payload.email, role=payload.role)
    return _private_response(
        {
            "message": "Invitation sent",
            "userId": result.user_id,
            "email": result.email,
            "role": result.role,
        }
    )


@admin_router.get("/users")
async def list_users(
    request: Request,
    limit: int = 50,
    offset: int = 0,
    _admin: AuthUser = Depends(require_role("admin")),
):
    profiles = await _directory(request).list_profiles(limit=limit, offset=offset)
    users = [
        {"id": p.id, "email": p.email, "name": p.name, "role": p.role or "tenant", "phone": p.phone}
        for p in profiles
    ]
    return _private_response({"message": "Admin users endpoint", "users": users})
