"""
Configuration and startup security checks for RentWise.

Why: The service role key bypasses row-level security. It must exist only
in the server environment, never in anything shipped to the browser, and a
production process must refuse to start when it is obviously misconfigured.

Permissions: The caller needs no special privileges. Functions read
environment variables and raise `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping
import os

from backend.identity_access.timeouts import default_timeout

DUMMY_KEYS = {"DUMMY_DO_NOT_USE", "CHANGE_ME"}
BROWSER_PREFIXES = ("VITE_", "PUBLIC_", "NEXT_PUBLIC_")
SERVICE_KEY_NAMES = ("SUPABASE_SERVICE_ROLE_KEY", "SERVICE_ROLE_KEY")


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def _env(*names: str) -> str:
    for name in names:
        val = (os.getenv(name) or "").strip()
        if val:
            return val
    return ""


@dataclass(frozen=True)
class WebSettings:
    supabase_url: str = ""
    anon_key: str = ""
    service_role_key: str = ""
    environment: str = "dev"
    log_level: str = "INFO"
    call_timeout_seconds: float = 5.0
    public_api_paths: tuple[str, ...] = field(default=("/api/health", "/api/csrf-token"))

    @property
    def is_production(self) -> bool:
        return _is_prod_like(self.environment)

    @property
    def identity_configured(self) -> bool:
        return bool(self.supabase_url and (self.service_role_key or self.anon_key))

    @classmethod
    def from_env(cls) -> "WebSettings":
        extra = tuple(p.strip() for p in (os.getenv("RENTWISE_PUBLIC_PATHS") or "").split(",") if p.strip())
        return cls(
            supabase_url=_env("SUPABASE_URL", "VITE_SUPABASE_URL").rstrip("/"),
            anon_key=_env("SUPABASE_ANON_KEY", "VITE_SUPABASE_ANON_KEY"),
            # The service key is deliberately never read from a browser-prefixed variable.
            service_role_key=_env("SUPABASE_SERVICE_ROLE_KEY"),
            environment=(os.getenv("RENTWISE_ENV", "dev") or "dev").lower(),
            log_level=(os.getenv("LOG_LEVEL", "INFO") or "INFO").upper(),
            call_timeout_seconds=default_timeout(),
            public_api_paths=("/api/health", "/api/csrf-token") + extra,
        )


def assert_browser_safe(values: Mapping[str, str]) -> None:
    """Refuse configuration where the service key is exposed to the browser.

    Any browser-prefixed variable (e.g. `VITE_SUPABASE_SERVICE_ROLE_KEY`) that
    names a service key, or holds the same value as the server's service key,
    aborts startup.
    """
    service = (values.get("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
    for name, value in values.items():
        if not name.startswith(BROWSER_PREFIXES):
            continue
        prefix = next(p for p in BROWSER_PREFIXES if name.startswith(p))
        bare = name[len(prefix):]
        if bare in SERVICE_KEY_NAMES or (service and (value or "").strip() == service):
            raise SystemExit(f"Refusing to start: {name} exposes the service role key to the browser bundle.")


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (all environments):
    - No browser-prefixed variable carries the service role key.

    Checks (production/staging only):
    - SUPABASE_URL is set and uses https.
    - SUPABASE_SERVICE_ROLE_KEY is set and not a placeholder.
    - SUPABASE_ANON_KEY is set.
    """
    assert_browser_safe(dict(os.environ))

    env = os.getenv("RENTWISE_ENV", "dev")
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    url = _env("SUPABASE_URL", "VITE_SUPABASE_URL")
    if not url:
        raise SystemExit("Refusing to start: SUPABASE_URL is unset in production.")
    if not url.lower().startswith("https://"):
        raise SystemExit("Refusing to start: SUPABASE_URL must use https in production (got http).")

    srole = _env("SUPABASE_SERVICE_ROLE_KEY")
    if not srole or srole.upper() in DUMMY_KEYS:
        raise SystemExit(
            "Refusing to start: SUPABASE_SERVICE_ROLE_KEY is unset or a dummy placeholder in production."
        )

    if not _env("SUPABASE_ANON_KEY", "VITE_SUPABASE_ANON_KEY"):
        raise SystemExit("Refusing to start: SUPABASE_ANON_KEY is unset in production.")
