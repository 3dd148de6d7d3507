from __future__ import annotations

import logging
import os
import re
import sys
import time
import uuid
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from backend.identity_access.admin_client import AdminProvisioner
from backend.identity_access.directory import ProfileDirectory
from backend.identity_access.domain import AuthUser, display_name_from_email
from backend.identity_access.errors import AppError, ServiceUnavailable, UpstreamFailure, ValidationFailed
from backend.identity_access.roles import server_resolver
from backend.identity_access.tokens import TokenVerifier, extract_bearer_token
from backend.web import config as _cfg
from backend.web.config import WebSettings
from backend.web.identity_wiring import IdentityClients, build_identity_clients
from backend.web.routes.admin import admin_router
from backend.web.routes.manager import manager_router
from backend.web.routes.operations import operations_router
from backend.web.routes.security import (
    CSRF_COOKIE_NAME,
    csrf_required,
    csrf_valid,
    generate_csrf_token,
    is_api_path,
    set_csrf_cookie,
)
from backend.web.routes.tenant import tenant_router


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via RENTWISE_ENABLE_DOTENV (default true outside pytest).
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("RENTWISE_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    from dotenv import load_dotenv

    load_dotenv()

logger = logging.getLogger("rentwise.web")
REQUEST_ID_HEADER = "X-Request-ID"
PRIVATE_HEADERS = {"Cache-Control": "private, no-store"}
# Inbound ids end up in logs and response headers, so only plain tokens are echoed.
REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


def configure_logging(level: str) -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("rentwise").setLevel(getattr(logging, (level or "INFO").upper(), logging.INFO))


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _incoming_request_id(raw: Optional[str]) -> str:
    if raw and REQUEST_ID_RE.fullmatch(raw):
        return raw
    return str(uuid.uuid4())


def error_response(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError as `{message, requestId}` (plus field errors if any)."""
    body = exc.to_body()
    settings: Optional[WebSettings] = getattr(request.app.state, "settings", None)
    if isinstance(exc, UpstreamFailure) and exc.status_code >= 500 and settings is not None and settings.is_production:
        body["message"] = "Internal Server Error"
    body["requestId"] = _request_id(request)
    return JSONResponse(body, status_code=exc.status_code, headers=PRIVATE_HEADERS)


def _validation_errors(exc: RequestValidationError) -> list[dict]:
    errors = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ())]
        if loc and loc[0] in ("body", "query", "path"):
            loc = loc[1:]
        errors.append({"field": ".".join(loc), "message": str(err.get("msg", "Invalid value"))})
    return errors


def create_app(settings: WebSettings | None = None, clients: IdentityClients | None = None) -> FastAPI:
    """Build the FastAPI app with its clients constructed once and injected.

    Parameters:
        settings: configuration; read from the environment when omitted.
        clients: prebuilt identity/service clients (tests pass fakes); built
            from `settings` when omitted.
    """
    _cfg.ensure_secure_config_on_startup()
    settings = settings or WebSettings.from_env()
    configure_logging(settings.log_level)
    if clients is None:
        clients = build_identity_clients(settings)

    app = FastAPI(title="RentWise API", description="Property management backend", version="0.1.0")
    app.state.settings = settings
    app.state.clients = clients
    timeout = settings.call_timeout_seconds
    if clients.identity is not None:
        app.state.verifier = TokenVerifier(clients.identity, timeout_seconds=timeout)
        app.state.directory = ProfileDirectory(clients.identity, timeout_seconds=timeout)
        app.state.role_resolver = server_resolver(app.state.directory)
    else:
        app.state.verifier = None
        app.state.directory = None
        app.state.role_resolver = None
    app.state.provisioner = AdminProvisioner(clients.service, timeout_seconds=timeout)

    # --- Exception handlers ------------------------------------------------------

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return error_response(request, exc)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(request, ValidationFailed(_validation_errors(exc)))

    # --- Middleware (registered inner-most first) --------------------------------

    def _is_public_api(path: str) -> bool:
        return path in settings.public_api_paths

    async def _authenticate(request: Request) -> AuthUser:
        """Verify the bearer token and resolve the role; raises AppError."""
        token = extract_bearer_token(request.headers.get("authorization"))
        verifier: Optional[TokenVerifier] = request.app.state.verifier
        if verifier is None:
            raise ServiceUnavailable()
        subject = await verifier.verify_token(token)
        role = await request.app.state.role_resolver.resolve(subject)
        name = str(subject.user_metadata.get("name") or "").strip() or display_name_from_email(subject.email)
        return AuthUser(id=subject.id, email=subject.email, name=name, role=role)

    @app.middleware("http")
    async def auth_enforcement(request: Request, call_next):
        """Require a verified user on protected API paths; attach one elsewhere when a token is sent."""
        path = request.url.path
        if request.method.upper() == "OPTIONS":
            return await call_next(request)

        if not is_api_path(path) or _is_public_api(path):
            # Optional auth: a bad or unverifiable token leaves the request anonymous.
            if request.headers.get("authorization"):
                try:
                    request.state.user = await _authenticate(request)
                except AppError as exc:
                    logger.info("Optional auth skipped on %s: %s", path, exc.code)
            return await call_next(request)

        try:
            # Expose minimal, read-only user context for downstream handlers.
            request.state.user = await _authenticate(request)
        except AppError as exc:
            return error_response(request, exc)
        return await call_next(request)

    @app.middleware("http")
    async def csrf_protection(request: Request, call_next):
        if csrf_required(request) and not csrf_valid(request):
            return JSONResponse(
                {"message": "Invalid CSRF token. Please refresh the page and try again.", "requestId": _request_id(request)},
                status_code=403,
                headers=PRIVATE_HEADERS,
            )
        response = await call_next(request)
        if request.method.upper() == "GET" and not is_api_path(request.url.path) and not request.cookies.get(CSRF_COOKIE_NAME):
            set_csrf_cookie(response, generate_csrf_token(), environment=settings.environment)
        return response

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        connect_src = "'self'"
        if settings.supabase_url:
            host = settings.supabase_url.split("://", 1)[-1]
            connect_src += f" {settings.supabase_url} wss://{host}"
        csp = (
            "default-src 'self'; script-src 'self'; style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data: https:; font-src 'self' https: data:; object-src 'none'; "
            f"media-src 'self'; frame-src 'none'; connect-src {connect_src};"
        )
        response.headers.setdefault("Content-Security-Policy", csp)
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        if settings.is_production:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        """Assign a correlation id, log API calls, and turn crashes into a 500."""
        request_id = _incoming_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            if settings.is_production:
                logger.error("Unhandled error on %s %s [%s]", request.method, request.url.path, request_id)
            else:
                logger.exception("Unhandled error on %s %s [%s]", request.method, request.url.path, request_id)
            response = JSONResponse(
                {"message": "Internal Server Error", "requestId": request_id}, status_code=500, headers=PRIVATE_HEADERS
            )
        response.headers[REQUEST_ID_HEADER] = request_id
        if is_api_path(request.url.path):
            duration_ms = (time.perf_counter() - start) * 1000
            logger.info(
                "%s %s %s in %.0fms [%s]", request.method, request.url.path, response.status_code, duration_ms, request_id
            )
        return response

    app.include_router(operations_router)
    app.include_router(admin_router)
    app.include_router(manager_router)
    app.include_router(tenant_router)
    return app


app = create_app()
