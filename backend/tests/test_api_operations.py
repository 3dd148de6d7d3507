"""
Operations endpoints and response hygiene (headers, request ids, crashes).
"""
from __future__ import annotations

import re
from datetime import datetime

import httpx
import pytest
from httpx import ASGITransport


pytestmark = pytest.mark.anyio("asyncio")


def _client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.anyio
async def test_health_reports_ok_with_timestamp(make_app):
    async with _client(make_app()) as client:
        r = await client.get("/api/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert datetime.fromisoformat(body["timestamp"]).tzinfo is not None
    assert r.headers.get("Cache-Control") == "private, no-store"


@pytest.mark.anyio
async def test_health_works_without_identity_provider(make_app):
    async with _client(make_app(identity=None, service=None)) as client:
        r = await client.get("/api/health")
    assert r.status_code == 200


@pytest.mark.anyio
async def test_csrf_token_endpoint_sets_matching_cookie(make_app):
    async with _client(make_app()) as client:
        r = await client.get("/api/csrf-token")
        assert r.status_code == 200
        token = r.json()["csrfToken"]
        assert len(token) == 64
        assert client.cookies.get("csrf_token") == token


@pytest.mark.anyio
async def test_security_headers_present(make_app):
    async with _client(make_app()) as client:
        r = await client.get("/api/health")
    csp = r.headers.get("Content-Security-Policy", "")
    assert "default-src 'self'" in csp
    assert "https://example.supabase.co" in csp
    assert "wss://example.supabase.co" in csp
    assert r.headers.get("X-Frame-Options") == "DENY"
    assert r.headers.get("X-Content-Type-Options") == "nosniff"
    assert "Strict-Transport-Security" not in r.headers


@pytest.mark.anyio
async def test_hsts_only_in_production(make_app):
    async with _client(make_app(environment="prod")) as client:
        r = await client.get("/api/health")
    assert r.headers.get("Strict-Transport-Security", "").startswith("max-age=")


@pytest.mark.anyio
async def test_request_id_is_echoed_or_generated(make_app):
    async with _client(make_app()) as client:
        echoed = await client.get("/api/health", headers={"X-Request-ID": "req-123"})
        generated = await client.get("/api/health")
    assert echoed.headers["X-Request-ID"] == "req-123"
    assert generated.headers["X-Request-ID"]


@pytest.mark.anyio
@pytest.mark.parametrize("raw", ["a" * 200, "<script>alert(1)</script>", "id with spaces", "x;rm"])
async def test_unsafe_request_id_is_replaced(make_app, raw):
    async with _client(make_app()) as client:
        r = await client.get("/api/health", headers={"X-Request-ID": raw})
    returned = r.headers["X-Request-ID"]
    assert returned != raw
    assert re.fullmatch(r"[A-Za-z0-9._-]{1,128}", returned)


@pytest.mark.anyio
async def test_request_id_in_error_body_matches_header(make_app):
    async with _client(make_app()) as client:
        r = await client.get("/api/admin/users", headers={"X-Request-ID": "bad/id"})
    assert r.status_code == 401
    assert r.json()["requestId"] == r.headers["X-Request-ID"] != "bad/id"


@pytest.mark.anyio
async def test_unhandled_error_is_generic_500_with_request_id(make_app, auth_header):
    app = make_app()

    @app.get("/api/explode")
    async def explode():
        raise RuntimeError("secret internals")

    async with _client(app) as client:
        r = await client.get("/api/explode", headers={**auth_header("tenant-token"), "X-Request-ID": "req-500"})
    assert r.status_code == 500
    assert r.json() == {"message": "Internal Server Error", "requestId": "req-500"}
    assert "secret internals" not in r.text


@pytest.mark.anyio
async def test_api_calls_are_logged_with_status(make_app, caplog):
    caplog.set_level("INFO", logger="rentwise.web")
    async with _client(make_app()) as client:
        await client.get("/api/health", headers={"X-Request-ID": "req-log"})
    assert any("GET /api/health 200" in rec.getMessage() and "req-log" in rec.getMessage() for rec in caplog.records)
