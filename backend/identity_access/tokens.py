"""
Bearer token verification against the hosted identity provider.

Why: Keep token handling outside the web adapter so it can be unit tested
with a fake provider and reused by scripts.

Security: The token is exchanged with the provider (`auth.get_user`) on every
request; nothing is cached and failures are never retried. Tokens are never
logged.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
import logging

from .errors import InvalidToken, MissingAuth
from .timeouts import bounded_call, default_timeout

logger = logging.getLogger("rentwise.identity_access")

BEARER_PREFIX = "bearer"


@dataclass(frozen=True)
class VerifiedSubject:
    id: str
    email: str
    user_metadata: Dict[str, Any] = field(default_factory=dict)
    app_metadata: Dict[str, Any] = field(default_factory=dict)


def extract_bearer_token(header: Optional[str]) -> str:
    """Return the token from `Authorization: Bearer <token>` or raise MissingAuth."""
    if not header or not isinstance(header, str):
        raise MissingAuth()
    parts = header.strip().split()
    if len(parts) != 2 or parts[0].lower() != BEARER_PREFIX or not parts[1]:
        raise MissingAuth()
    return parts[1]


def _get(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def subject_from_user(user: Any) -> Optional[VerifiedSubject]:
    """Map a provider user object (or dict) to a VerifiedSubject."""
    uid = _get(user, "id")
    if not uid:
        return None
    user_meta = _get(user, "user_metadata")
    app_meta = _get(user, "app_metadata")
    return VerifiedSubject(
        id=str(uid),
        email=str(_get(user, "email") or ""),
        user_metadata=dict(user_meta) if isinstance(user_meta, Mapping) else {},
        app_metadata=dict(app_meta) if isinstance(app_meta, Mapping) else {},
    )


class TokenVerifier:
    """Exchange a bearer token for the provider's user record.

    Parameters
    ----------
    client:
        supabase client (or fake) exposing `auth.get_user(jwt)`.
    timeout_seconds:
        Upper bound for the provider call; expiry counts as an invalid token.
    """

    def __init__(self, client: Any, timeout_seconds: float | None = None) -> None:
        self._client = client
        self.timeout_seconds = timeout_seconds or default_timeout()

    async def verify_token(self, token: str) -> VerifiedSubject:
        try:
            resp = await bounded_call(self._client.auth.get_user, token, timeout_seconds=self.timeout_seconds)
        except TimeoutError as exc:
            logger.warning("Token verification timed out after %.1fs", self.timeout_seconds)
            raise InvalidToken() from exc
        except Exception as exc:
            logger.info("Token verification rejected: %s", exc.__class__.__name__)
            raise InvalidToken() from exc
        subject = subject_from_user(_get(resp, "user"))
        if subject is None:
            raise InvalidToken()
        return subject

    async def verify(self, authorization_header: Optional[str]) -> VerifiedSubject:
        return await self.verify_token(extract_bearer_token(authorization_header))


__all__ = [
    "TokenVerifier",
    "VerifiedSubject",
    "extract_bearer_token",
    "subject_from_user",
]
