"""
Role resolution as an ordered list of strategies (first valid match wins).

Each strategy takes a `RoleContext` and returns a role string or None. A
strategy may be a plain function or a coroutine function; strategies after
the first match are not evaluated, so a profile lookup only happens when the
token metadata carries no usable role.

Precedence:
    server: app metadata -> profile row -> default
    client: app metadata, then user metadata -> cached session (same user) -> profile row -> default

Only `app_metadata` is writable solely with the service key. Users can edit
their own `user_metadata`, so the server never reads a role from it.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence, Union
import inspect
import logging

from .directory import ProfileDirectory
from .domain import DEFAULT_ROLE, AuthUser, valid_role
from .tokens import VerifiedSubject

logger = logging.getLogger("rentwise.identity_access")


@dataclass(frozen=True)
class RoleContext:
    subject: VerifiedSubject
    cached: Optional[AuthUser] = None


RoleStrategy = Callable[[RoleContext], Union[Optional[str], Awaitable[Optional[str]]]]


def app_metadata_role(ctx: RoleContext) -> Optional[str]:
    """Role assigned with the service key (`app_metadata.role`)."""
    return valid_role(ctx.subject.app_metadata.get("role"))


def metadata_role(ctx: RoleContext) -> Optional[str]:
    """Client hint: app metadata first, then the user-editable metadata."""
    return app_metadata_role(ctx) or valid_role(ctx.subject.user_metadata.get("role"))


def cached_role(ctx: RoleContext) -> Optional[str]:
    """Role from the client-side cache, only when it belongs to the same user."""
    cached = ctx.cached
    if cached is None or cached.id != ctx.subject.id:
        return None
    return valid_role(cached.role)


def profile_role(directory: ProfileDirectory) -> RoleStrategy:
    async def _strategy(ctx: RoleContext) -> Optional[str]:
        profile = await directory.fetch(ctx.subject.id)
        return profile.role if profile else None

    _strategy.__name__ = "profile_role"
    return _strategy


class RoleResolver:
    """Combine strategies with first-match-wins semantics; never raises."""

    def __init__(self, strategies: Sequence[RoleStrategy], *, default: str = DEFAULT_ROLE) -> None:
        self.strategies = list(strategies)
        self.default = valid_role(default) or DEFAULT_ROLE

    async def resolve(self, subject: VerifiedSubject, *, cached: Optional[AuthUser] = None) -> str:
        ctx = RoleContext(subject=subject, cached=cached)
        for strategy in self.strategies:
            name = getattr(strategy, "__name__", strategy.__class__.__name__)
            try:
                result = strategy(ctx)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as exc:
                logger.warning("Role strategy %s failed: %s", name, exc.__class__.__name__)
                continue
            role = valid_role(result)
            if role:
                logger.debug("Role resolved by %s", name)
                return role
        return self.default


def server_resolver(directory: ProfileDirectory) -> RoleResolver:
    return RoleResolver([app_metadata_role, profile_role(directory)])


def client_resolver(directory: ProfileDirectory | None) -> RoleResolver:
    strategies: list[RoleStrategy] = [metadata_role, cached_role]
    if directory is not None:
        strategies.append(profile_role(directory))
    return RoleResolver(strategies)


__all__ = [
    "RoleContext",
    "RoleResolver",
    "RoleStrategy",
    "app_metadata_role",
    "cached_role",
    "client_resolver",
    "metadata_role",
    "profile_role",
    "server_resolver",
]
