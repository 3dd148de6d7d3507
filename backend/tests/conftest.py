"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend to avoid sandbox restrictions
that can affect the Trio backend (e.g., socketpair permission errors), and
keep every test independent of a real Supabase project.
"""
import sys
from pathlib import Path

import pytest

# Ensure `backend.*` and the test helpers are importable across tests
REPO_ROOT = Path(__file__).resolve().parents[2]
TESTS_DIR = REPO_ROOT / "backend" / "tests"
for p in (str(REPO_ROOT), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

from fake_identity import FakeSupabase  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_identity_env(monkeypatch: pytest.MonkeyPatch):
    """Start every test from a dev environment without live credentials.

    Why:
        A developer shell may export real Supabase keys or a prod env name.
        The startup guard and the client wiring read those, so leaking them
        into tests would make results depend on the machine.
    """
    for var in (
        "RENTWISE_ENV",
        "SUPABASE_URL",
        "VITE_SUPABASE_URL",
        "SUPABASE_ANON_KEY",
        "VITE_SUPABASE_ANON_KEY",
        "SUPABASE_SERVICE_ROLE_KEY",
        "VITE_SUPABASE_SERVICE_ROLE_KEY",
        "RENTWISE_PUBLIC_PATHS",
        "AUTH_CALL_TIMEOUT_SECONDS",
    ):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture
def supabase() -> FakeSupabase:
    """Fake client with one user per role and matching profile rows."""
    return FakeSupabase.seeded()


@pytest.fixture
def make_app(supabase: FakeSupabase):
    """Factory for an app wired to the fake client (identity and service tiers)."""
    from backend.web.config import WebSettings
    from backend.web.identity_wiring import IdentityClients
    from backend.web.main import create_app

    def _make(*, service: object = "same", identity: object = "same", **settings_kwargs):
        settings = WebSettings(
            supabase_url=settings_kwargs.pop("supabase_url", "https://example.supabase.co"),
            anon_key=settings_kwargs.pop("anon_key", "anon-test-key"),
            service_role_key=settings_kwargs.pop("service_role_key", "service-test-key"),
            call_timeout_seconds=settings_kwargs.pop("call_timeout_seconds", 2.0),
            **settings_kwargs,
        )
        clients = IdentityClients(
            identity=supabase if identity == "same" else identity,
            service=supabase if service == "same" else service,
        )
        return create_app(settings, clients)

    return _make


@pytest.fixture
def auth_header():
    def _header(token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}

    return _header
