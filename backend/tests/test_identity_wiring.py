"""
Client wiring: which supabase clients get built from which settings.
"""
from __future__ import annotations

import pytest

from backend.web import identity_wiring
from backend.web.config import WebSettings


@pytest.fixture
def created(monkeypatch: pytest.MonkeyPatch):
    calls = []

    def _fake_create(url, key, *, timeout):
        calls.append((url, key, timeout))
        return {"key": key}

    monkeypatch.setattr(identity_wiring, "_create", _fake_create)
    return calls


def test_service_key_builds_both_tiers_from_one_client(created):
    settings = WebSettings(supabase_url="https://x.supabase.co", anon_key="anon", service_role_key="svc")
    clients = identity_wiring.build_identity_clients(settings)
    assert clients.service == {"key": "svc"}
    assert clients.identity is clients.service
    assert [c[1] for c in created] == ["svc"]


def test_anon_only_has_no_service_client(created):
    settings = WebSettings(supabase_url="https://x.supabase.co", anon_key="anon")
    clients = identity_wiring.build_identity_clients(settings)
    assert clients.service is None
    assert clients.identity == {"key": "anon"}


def test_missing_url_builds_nothing(created, caplog):
    caplog.set_level("WARNING", logger="rentwise.web")
    clients = identity_wiring.build_identity_clients(WebSettings(anon_key="anon", service_role_key="svc"))
    assert clients.identity is None and clients.service is None
    assert created == []
    assert any("not configured" in r.getMessage() for r in caplog.records)


def test_client_construction_error_is_logged_not_raised(monkeypatch: pytest.MonkeyPatch, caplog):
    def _broken(url, key, *, timeout):
        raise ValueError("Invalid API key")

    monkeypatch.setattr(identity_wiring, "_create", _broken)
    settings = WebSettings(supabase_url="https://x.supabase.co", anon_key="anon", service_role_key="svc")
    clients = identity_wiring.build_identity_clients(settings)
    assert clients.identity is None
    assert all("svc" not in r.getMessage() for r in caplog.records)


def test_create_app_uses_built_clients(created):
    from backend.web.main import create_app

    settings = WebSettings(supabase_url="https://x.supabase.co", anon_key="anon")
    app = create_app(settings)
    assert app.state.clients.identity == {"key": "anon"}
    assert app.state.verifier is not None
    assert not app.state.provisioner.configured
