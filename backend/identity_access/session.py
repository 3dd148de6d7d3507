"""
Client session bootstrap: optimistic cache, then confirm with the provider.

States::

    Idle -> Loading -> Resolved(user) | Unauthenticated
    Idle -> Resolved(cached)  (then confirmed or replaced)

Why:
    Showing the cached user immediately avoids a loading view on every start.
    The cached role is only a UI hint; the server re-resolves roles per request.

Concurrency:
    One bootstrap per instance. `close()` sets a cancellation flag that every
    transition checks, so a confirmation finishing after teardown is dropped.
    Provider calls follow the shared timeout policy and fail closed.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Collection, List, Optional
import logging

from .directory import ProfileDirectory
from .domain import DEFAULT_ROLE, AuthUser, Profile, display_name_from_email, home_path
from .errors import UpstreamFailure, provider_message
from .roles import RoleResolver, RoleStrategy, cached_role, metadata_role
from .stores import SessionCacheProtocol
from .timeouts import bounded_call, default_timeout
from .tokens import VerifiedSubject, subject_from_user

logger = logging.getLogger("rentwise.identity_access")


class SessionStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    RESOLVED = "resolved"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True)
class SessionState:
    status: SessionStatus
    user: Optional[AuthUser] = None

    @property
    def is_authenticated(self) -> bool:
        return self.status is SessionStatus.RESOLVED and self.user is not None


IDLE = SessionState(SessionStatus.IDLE)
LOADING = SessionState(SessionStatus.LOADING)
UNAUTHENTICATED = SessionState(SessionStatus.UNAUTHENTICATED)


class AuthEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


def _get(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


class SupabaseSessionProvider:
    """Adapter over the anon supabase client's `auth` namespace (blocking calls)."""

    def __init__(self, client: Any) -> None:
        self._auth = client.auth

    def get_session(self) -> Any:
        return self._auth.get_session()

    def refresh_session(self) -> Any:
        return _get(self._auth.refresh_session(), "session")

    def sign_in(self, email: str, password: str) -> Any:
        return _get(self._auth.sign_in_with_password({"email": email, "password": password}), "session")

    def sign_out(self) -> None:
        self._auth.sign_out()


class _ProfileOnce:
    """Fetch a profile at most once per resolution (role and name share it)."""

    def __init__(self, directory: ProfileDirectory, user_id: str) -> None:
        self._directory = directory
        self._user_id = user_id
        self._done = False
        self._profile: Optional[Profile] = None

    async def get(self) -> Optional[Profile]:
        if not self._done:
            self._profile = await self._directory.fetch(self._user_id)
            self._done = True
        return self._profile

    async def role(self, ctx) -> Optional[str]:
        profile = await self.get()
        return profile.role if profile else None


Listener = Callable[[SessionState], None]


class SessionBootstrap:
    def __init__(
        self,
        provider: Any,
        cache: SessionCacheProtocol,
        *,
        directory: ProfileDirectory | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._provider = provider
        self._cache = cache
        self._directory = directory
        self.timeout_seconds = timeout_seconds or default_timeout()
        self._state: SessionState = IDLE
        self._started = False
        self._closed = False
        self._listeners: List[Listener] = []

    # --- State ----------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def close(self) -> None:
        self._closed = True
        self._listeners.clear()

    def _transition(self, state: SessionState) -> bool:
        if self._closed:
            return False
        self._state = state
        if state.status is SessionStatus.RESOLVED:
            self._cache.save(state.user)
        elif state.status is SessionStatus.UNAUTHENTICATED:
            self._cache.clear()
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Session listener failed")
        return True

    # --- Resolution -----------------------------------------------------------

    async def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        return await bounded_call(fn, *args, timeout_seconds=self.timeout_seconds)

    async def resolve_user(self, session: Any) -> Optional[AuthUser]:
        subject = subject_from_user(_get(session, "user"))
        if subject is None:
            return None
        cached = self._cache.load()
        same_user = cached if cached is not None and cached.id == subject.id else None

        strategies: List[RoleStrategy] = [metadata_role, cached_role]
        profile_once = _ProfileOnce(self._directory, subject.id) if self._directory is not None else None
        if profile_once is not None:
            strategies.append(profile_once.role)
        role = await RoleResolver(strategies).resolve(subject, cached=cached)

        name = str(subject.user_metadata.get("name") or "").strip()
        if not name and same_user is not None:
            name = same_user.name
        if not name and profile_once is not None:
            profile = await profile_once.get()
            name = profile.name if profile else ""
        return AuthUser(id=subject.id, email=subject.email, name=name or display_name_from_email(subject.email), role=role)

    @staticmethod
    def _fallback_user(session: Any) -> Optional[AuthUser]:
        subject: Optional[VerifiedSubject] = subject_from_user(_get(session, "user"))
        if subject is None:
            return None
        return AuthUser(
            id=subject.id, email=subject.email, name=display_name_from_email(subject.email), role=DEFAULT_ROLE
        )

    async def _confirm_session(self) -> Any:
        session = await self._call(self._provider.get_session)
        if session is None:
            try:
                session = await self._call(self._provider.refresh_session)
            except TimeoutError:
                raise
            except Exception as exc:
                logger.info("Session refresh failed: %s", exc.__class__.__name__)
                session = None
        return session

    # --- Operations -----------------------------------------------------------

    async def start(self) -> SessionState:
        """Run the bootstrap once; later calls return the current state."""
        if self._started or self._closed:
            return self._state
        self._started = True

        cached = self._cache.load()
        self._transition(SessionState(SessionStatus.RESOLVED, cached) if cached else LOADING)

        try:
            session = await self._confirm_session()
            fresh = await self.resolve_user(session) if session is not None else None
        except Exception as exc:
            # Provider unreachable or timed out: keep the optimistic user if any.
            logger.warning("Session confirmation failed: %s", exc.__class__.__name__)
            if cached is None:
                self._transition(UNAUTHENTICATED)
            return self._state

        if fresh is not None:
            self._transition(SessionState(SessionStatus.RESOLVED, fresh))
        else:
            self._transition(UNAUTHENTICATED)
        return self._state

    async def handle_event(self, event: AuthEvent | str, session: Any = None) -> SessionState:
        """Apply a provider auth-state event (sign in/out, token refresh)."""
        event = AuthEvent(event)
        if self._closed:
            return self._state
        if event is AuthEvent.SIGNED_OUT:
            self._transition(UNAUTHENTICATED)
            return self._state
        try:
            user = await self.resolve_user(session)
        except Exception as exc:
            logger.warning("User resolution failed on %s: %s", event.value, exc.__class__.__name__)
            user = None
        if user is None and event is AuthEvent.SIGNED_IN:
            user = self._fallback_user(session)
        if user is not None:
            self._transition(SessionState(SessionStatus.RESOLVED, user))
        return self._state

    async def sign_in(self, email: str, password: str) -> Optional[AuthUser]:
        # A closed bootstrap no longer owns the cache.
        if not self._closed:
            self._cache.clear()
        self._transition(LOADING)
        try:
            session = await self._call(self._provider.sign_in, email, password)
        except TimeoutError as exc:
            self._transition(UNAUTHENTICATED)
            raise UpstreamFailure("Sign-in timed out", status_code=504) from exc
        except Exception as exc:
            self._transition(UNAUTHENTICATED)
            raise UpstreamFailure(provider_message(exc, "Login failed")) from exc
        if session is None:
            self._transition(UNAUTHENTICATED)
            raise UpstreamFailure("Login failed: no user returned")
        await self.handle_event(AuthEvent.SIGNED_IN, session)
        return self._state.user

    async def sign_out(self) -> SessionState:
        if not self._closed:
            self._cache.clear()
        self._transition(UNAUTHENTICATED)
        try:
            await self._call(self._provider.sign_out)
        except Exception as exc:
            logger.info("Provider sign-out failed: %s", exc.__class__.__name__)
        return self._state


# --- Auth gate -------------------------------------------------------------------


@dataclass(frozen=True)
class GateDecision:
    allow: bool
    redirect: Optional[str] = None
    loading: bool = False


def gate(
    state: SessionState,
    allowed_roles: Optional[Collection[str]] = None,
    *,
    login_path: str = "/login",
) -> GateDecision:
    """Decide whether a protected view renders, waits, or redirects.

    A cached user with a matching role renders even while confirmation is
    still running. Unauthenticated sessions go to the login page; a role
    mismatch goes to the user's own dashboard root.
    """
    user = state.user
    pending = state.status in (SessionStatus.IDLE, SessionStatus.LOADING)
    if user is not None and (not allowed_roles or user.role in allowed_roles):
        return GateDecision(allow=True)
    if pending:
        return GateDecision(allow=False, loading=True)
    if user is None or state.status is SessionStatus.UNAUTHENTICATED:
        return GateDecision(allow=False, redirect=login_path)
    return GateDecision(allow=False, redirect=home_path(user.role))


__all__ = [
    "AuthEvent",
    "GateDecision",
    "SessionBootstrap",
    "SessionState",
    "SessionStatus",
    "SupabaseSessionProvider",
    "gate",
]
