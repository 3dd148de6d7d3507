"""
API client for the RentWise server.

This module ensures:
1. Every protected call carries `Authorization: Bearer <token>`.
2. Non-API state-changing calls echo the CSRF cookie in `X-CSRF-Token`.
3. A 401 triggers at most one token refresh and retry.
4. Errors surface as `ApiError` with user-facing copy and the server's
   correlation id; tokens never appear in messages or logs.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Optional
import logging

import httpx

from backend.identity_access.errors import NETWORK_MESSAGE, friendly_error_message

logger = logging.getLogger("rentwise.client")

PUBLIC_PATHS = frozenset({"/api/health", "/api/csrf-token"})
CSRF_HEADER = "X-CSRF-Token"
CSRF_COOKIE = "csrf_token"

TokenProvider = Callable[[], Optional[str]]


class ApiError(Exception):
    def __init__(self, status_code: int, message: str, *, request_id: str | None = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.request_id = request_id
        self.body = body

    @property
    def unauthenticated(self) -> bool:
        return self.status_code == 401

    @property
    def forbidden(self) -> bool:
        return self.status_code == 403


class ApiClient:
    """Thin synchronous client.

    Parameters
    ----------
    base_url:
        Server origin, e.g. `https://app.example.com`.
    token_provider:
        Returns the current access token (or None when signed out).
    refresh_token:
        Optional callback invoked once after a 401; returns a fresh token.
    http:
        Optional preconfigured `httpx.Client` (tests pass FastAPI's TestClient).
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        token_provider: TokenProvider | None = None,
        refresh_token: TokenProvider | None = None,
        timeout: float = 20.0,
        http: httpx.Client | None = None,
    ) -> None:
        self._token_provider = token_provider or (lambda: None)
        self._refresh_token = refresh_token
        self._http = http or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # --- Core -----------------------------------------------------------------

    def _headers(self, method: str, path: str, token: Optional[str]) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if token and path not in PUBLIC_PATHS:
            headers["Authorization"] = f"Bearer {token}"
        if method.upper() not in ("GET", "HEAD", "OPTIONS") and not path.startswith("/api/"):
            csrf = self._http.cookies.get(CSRF_COOKIE)
            if csrf:
                headers[CSRF_HEADER] = csrf
        return headers

    def _send(self, method: str, path: str, token: Optional[str], **kwargs: Any) -> httpx.Response:
        try:
            return self._http.request(method, path, headers=self._headers(method, path, token), **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Request to %s failed: %s", path, exc.__class__.__name__)
            raise ApiError(0, NETWORK_MESSAGE) from exc

    def request(self, method: str, path: str, *, json: Any = None, params: Dict[str, Any] | None = None) -> Any:
        token = self._token_provider()
        resp = self._send(method, path, token, json=json, params=params)
        if resp.status_code == 401 and self._refresh_token is not None and path not in PUBLIC_PATHS:
            fresh = self._refresh_token()
            if fresh:
                resp = self._send(method, path, fresh, json=json, params=params)
        return self._parse(resp)

    @staticmethod
    def _parse(resp: httpx.Response) -> Any:
        try:
            body = resp.json()
        except ValueError:
            body = None
        if resp.status_code >= 400:
            raw = body.get("message") if isinstance(body, dict) else None
            request_id = body.get("requestId") if isinstance(body, dict) else None
            raise ApiError(resp.status_code, friendly_error_message(raw or ""), request_id=request_id, body=body)
        return body

    # --- Endpoints ------------------------------------------------------------

    def health(self) -> Dict[str, Any]:
        return self.request("GET", "/api/health")

    def fetch_csrf_token(self) -> str:
        return self.request("GET", "/api/csrf-token")["csrfToken"]

    def create_manager(self, *, name: str, email: str, phone: str | None = None) -> Dict[str, Any]:
        return self.request("POST", "/api/admin/managers", json={"name": name, "email": email, "phone": phone})

    def invite_user(self, *, email: str, role: str) -> Dict[str, Any]:
        return self.request("POST", "/api/admin/invite", json={"email": email, "role": role})

    def list_users(self, *, limit: int = 50, offset: int = 0) -> list:
        return self.request("GET", "/api/admin/users", params={"limit": limit, "offset": offset})["users"]

    def list_properties(self) -> list:
        return self.request("GET", "/api/manager/properties")["properties"]

    def create_maintenance_request(self, *, title: str, description: str, priority: str, unit_id: str) -> Dict[str, Any]:
        payload = {"title": title, "description": description, "priority": priority, "unitId": unit_id}
        return self.request("POST", "/api/maintenance-requests", json=payload)

    def send_message(self, *, receiver_id: str, content: str, subject: str | None = None) -> Dict[str, Any]:
        payload = {"receiverId": receiver_id, "content": content, "subject": subject}
        return self.request("POST", "/api/messages", json=payload)


__all__ = ["ApiClient", "ApiError"]
