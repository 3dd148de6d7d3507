"""Operations endpoints (health check and CSRF token issuance); both public."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from backend.web.routes.security import generate_csrf_token, set_csrf_cookie

operations_router = APIRouter(tags=["Operations"])


@operations_router.get("/api/health")
async def health_check():
    # Security: include no-store to avoid caching any runtime status.
    body = {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
    return JSONResponse(body, headers={"Cache-Control": "private, no-store"})


@operations_router.get("/api/csrf-token")
async def csrf_token(request: Request):
    token = generate_csrf_token()
    response = JSONResponse({"csrfToken": token}, headers={"Cache-Control": "private, no-store"})
    set_csrf_cookie(response, token, environment=request.app.state.settings.environment)
    return response
