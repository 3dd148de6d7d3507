"""
Synchronous API client: auth headers, one refresh retry, error mapping.
"""
from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from backend.client.api_client import ApiClient, ApiError
from backend.identity_access.errors import NETWORK_MESSAGE

UNIT_ID = "8f14e45f-ceea-467f-a8f3-6a3e6f6bd6a4"


@pytest.fixture
def app_http(make_app):
    with TestClient(make_app()) as http:
        yield http


def test_admin_lists_users_through_client(app_http):
    client = ApiClient(token_provider=lambda: "admin-token", http=app_http)
    users = client.list_users()
    assert [u["email"] for u in users] == ["manager@example.com"]


def test_unauthenticated_call_refreshes_once(app_http):
    refreshed = []

    def _refresh():
        refreshed.append(1)
        return "manager-token"

    client = ApiClient(token_provider=lambda: "expired", refresh_token=_refresh, http=app_http)
    properties = client.list_properties()
    assert [p["id"] for p in properties] == ["p1"]
    assert refreshed == [1]


def test_failed_refresh_surfaces_401(app_http):
    client = ApiClient(token_provider=lambda: "expired", refresh_token=lambda: "still-bad", http=app_http)
    with pytest.raises(ApiError) as exc:
        client.list_properties()
    assert exc.value.unauthenticated
    assert exc.value.request_id


def test_forbidden_maps_to_api_error(app_http):
    client = ApiClient(token_provider=lambda: "tenant-token", http=app_http)
    with pytest.raises(ApiError) as exc:
        client.invite_user(email="x@example.com", role="manager")
    assert exc.value.forbidden
    assert exc.value.message == "You don't have permission to access this resource"


def test_validation_errors_keep_field_detail(app_http):
    client = ApiClient(token_provider=lambda: "tenant-token", http=app_http)
    with pytest.raises(ApiError) as exc:
        client.create_maintenance_request(title="", description="too short", priority="low", unit_id=UNIT_ID)
    assert exc.value.status_code == 400
    assert {e["field"] for e in exc.value.body["errors"]} >= {"title", "description"}


def test_tenant_flow(app_http):
    client = ApiClient(token_provider=lambda: "tenant-token", http=app_http)
    created = client.create_maintenance_request(
        title="Broken heater", description="No heat in the bedroom.", priority="high", unit_id=UNIT_ID
    )
    assert created["data"]["tenantId"] == "u-tenant"
    sent = client.send_message(receiver_id=UNIT_ID, content="Thanks!")
    assert sent["data"]["senderId"] == "u-tenant"
    assert client.health()["status"] == "ok"
    assert len(client.fetch_csrf_token()) == 64


def test_headers_for_public_and_page_requests():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"status": "ok"})

    http = httpx.Client(base_url="http://test", transport=httpx.MockTransport(handler))
    http.cookies.set("csrf_token", "tok")
    client = ApiClient(token_provider=lambda: "secret-token", http=http)
    client.health()
    client.request("POST", "/settings", json={})
    client.request("POST", "/api/messages", json={})

    health, page, api = seen
    assert "authorization" not in health.headers
    assert page.headers["x-csrf-token"] == "tok"
    assert api.headers["authorization"] == "Bearer secret-token"
    assert "x-csrf-token" not in api.headers


def test_network_failure_maps_to_friendly_message():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    http = httpx.Client(base_url="http://test", transport=httpx.MockTransport(handler))
    with ApiClient(token_provider=lambda: "t", http=http) as client:
        with pytest.raises(ApiError) as exc:
            client.health()
    assert exc.value.status_code == 0
    assert exc.value.message == NETWORK_MESSAGE
