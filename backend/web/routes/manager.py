"""Manager API routes (property portfolio reads)."""

from __future__ import annotations

from typing import Any
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from backend.identity_access.domain import AuthUser
from backend.identity_access.errors import UpstreamFailure, provider_message
from backend.identity_access.timeouts import bounded_call
from backend.web.routes.security import require_role

logger = logging.getLogger("rentwise.web")

manager_router = APIRouter(prefix="/api/manager", tags=["Manager"])

PROPERTY_COLUMNS = "id, name, address, city, state, zip_code, total_units, manager_id"


def _private_response(body: dict, *, status_code: int = 200) -> JSONResponse:
    return JSONResponse(body, status_code=status_code, headers={"Cache-Control": "private, no-store"})


def _query_properties(client: Any, manager_id: str | None) -> Any:
    query = client.table("properties").select(PROPERTY_COLUMNS)
    if manager_id is not None:
        query = query.eq("manager_id", manager_id)
    return query.order("name").execute()


@manager_router.get("/properties")
async def list_properties(request: Request, user: AuthUser = Depends(require_role("manager", "admin"))):
    """List properties managed by the caller; admins see the whole portfolio.

    Permissions:
        Caller must have role `manager` or `admin`.
    """
    client = request.app.state.clients.identity
    settings = request.app.state.settings
    scope = None if user.role == "admin" else user.id
    try:
        resp = await bounded_call(_query_properties, client, scope, timeout_seconds=settings.call_timeout_seconds)
    except TimeoutError as exc:
        raise UpstreamFailure("Property lookup timed out", status_code=504) from exc
    except Exception as exc:
        logger.warning("Property lookup failed: %s", exc.__class__.__name__)
        raise UpstreamFailure(provider_message(exc, "Failed to fetch properties"), status_code=500) from exc
    rows = getattr(resp, "data", None) or []
    return _private_response({"message": "Manager properties endpoint", "managerId": user.id, "properties": rows})
