"""
Construct the identity/database clients once at startup.

Why:
    Handlers and middleware receive the clients by reference through
    `app.state` instead of reaching for a lazily initialised module global.
    Two tiers exist:

    - `identity`: verifies bearer tokens and reads profiles. Uses the service
      key when present (server-side profile reads bypass RLS), else the anon key.
    - `service`: admin provisioning only. Built solely from
      SUPABASE_SERVICE_ROLE_KEY; None when the key is absent.

Security:
    Keys are never logged. Sessions are not persisted server-side.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
import logging

from .config import WebSettings

logger = logging.getLogger("rentwise.web")


@dataclass
class IdentityClients:
    identity: Optional[Any] = None
    service: Optional[Any] = None


def _create(url: str, key: str, *, timeout: float) -> Any:
    # Lazy import keeps the dependency out of pure unit tests.
    from supabase import ClientOptions, create_client

    options = ClientOptions(
        postgrest_client_timeout=int(max(1, timeout)),
        auto_refresh_token=False,
        persist_session=False,
    )
    return create_client(url, key, options=options)


def build_identity_clients(settings: WebSettings) -> IdentityClients:
    """Create the clients configured by `settings`.

    Behavior:
        - Missing URL or keys leave the corresponding client as None; the auth
          middleware then answers 503 and admin routes answer 500.
        - Client construction errors are logged (class and message only).
    """
    clients = IdentityClients()
    if not settings.supabase_url:
        logger.warning("Supabase not configured - auth middleware will reject all requests")
        return clients

    if settings.service_role_key:
        try:
            clients.service = _create(settings.supabase_url, settings.service_role_key, timeout=settings.call_timeout_seconds)
        except Exception as exc:
            logger.warning("Supabase service client unavailable: %s: %s", exc.__class__.__name__, str(exc))

    if clients.service is not None:
        clients.identity = clients.service
    elif settings.anon_key:
        try:
            clients.identity = _create(settings.supabase_url, settings.anon_key, timeout=settings.call_timeout_seconds)
        except Exception as exc:
            logger.warning("Supabase client unavailable: %s: %s", exc.__class__.__name__, str(exc))

    if clients.identity is None:
        logger.warning("Supabase not configured - auth middleware will reject all requests")
    else:
        logger.info("Identity client wired: Supabase (%s)", "service" if clients.service is not None else "anon")
    return clients


__all__ = ["IdentityClients", "build_identity_clients"]
