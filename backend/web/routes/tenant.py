"""
Tenant-facing API routes and authenticated messaging.

Payloads are validated and sanitized by the schema models; the caller's id
is taken from the verified token, never from the request body.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from backend.identity_access.domain import AuthUser
from backend.web.models.schemas import MaintenanceRequestPayload, MessagePayload
from backend.web.routes.security import current_user, require_role
from backend.web.sanitize import sanitize_object


tenant_router = APIRouter(tags=["Tenant"])


def _private_response(body: dict, *, status_code: int = 200) -> JSONResponse:
    return JSONResponse(body, status_code=status_code, headers={"Cache-Control": "private, no-store"})


@tenant_router.post("/api/maintenance-requests")
async def create_maintenance_request(
    payload: MaintenanceRequestPayload,
    user: AuthUser = Depends(require_role("tenant")),
):
    data = sanitize_object(payload.dump())
    return _private_response(
        {"message": "Maintenance request created", "data": {**data, "tenantId": user.id}},
        status_code=201,
    )


@tenant_router.post("/api/messages")
async def send_message(payload: MessagePayload, user: AuthUser = Depends(current_user)):
    """Send a message; any authenticated role may call this."""
    data = sanitize_object(payload.dump())
    return _private_response({"message": "Message sent", "data": {**data, "senderId": user.id}}, status_code=201)
