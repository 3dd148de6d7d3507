"""
Admin provisioning against the identity provider (service credential only).

Design:
- Framework-agnostic, called from the admin web routes.
- Two steps per operation: create/invite the identity, then upsert the
  matching profile row. The provider has no cross-service transaction, so a
  failed profile write triggers a compensating identity delete. When that
  delete also fails the orphaned user id is logged and reported back.
- The role is stored in `app_metadata`, which only the service key can
  write; invites set it with `update_user_by_id` after the invite call.

Security:
- The client passed in must be built with the service role key; it is never
  handed to browser code.
- Do not log passwords or keys. Temporary passwords are returned once to the
  calling admin and never stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
import logging
import secrets

from .directory import ProfileDirectory
from .domain import Profile, coerce_role, display_name_from_email
from .errors import ServiceUnavailable, UpstreamFailure, provider_message
from .timeouts import bounded_call, default_timeout
from .tokens import subject_from_user

logger = logging.getLogger("rentwise.identity_access")

TEMP_PASSWORD_BYTES = 18
CONFIG_ERROR_MESSAGE = "Server configuration error"


def generate_temp_password() -> str:
    return secrets.token_urlsafe(TEMP_PASSWORD_BYTES)


@dataclass(frozen=True)
class ProvisionResult:
    user_id: str
    email: str
    name: str
    role: str
    temp_password: Optional[str] = None


class ProvisioningFailed(UpstreamFailure):
    """Profile step failed after the identity was created."""

    code = "provisioning_failed"

    def __init__(self, message: str, *, user_id: str, rolled_back: bool):
        super().__init__(message)
        self.user_id = user_id
        self.rolled_back = rolled_back

    def to_body(self) -> dict:
        body = {"message": self.message, "identityRolledBack": self.rolled_back}
        if not self.rolled_back:
            body["orphanedUserId"] = self.user_id
        return body


class AdminProvisioner:
    """Create managers and invite users with the service client.

    Parameters
    ----------
    service_client:
        supabase client built with the service role key, or None when the key
        is not configured; every operation then fails fast with a 500.
    """

    def __init__(self, service_client: Any | None, *, timeout_seconds: float | None = None) -> None:
        self._client = service_client
        self.timeout_seconds = timeout_seconds or default_timeout()
        self.directory = (
            ProfileDirectory(service_client, timeout_seconds=self.timeout_seconds) if service_client is not None else None
        )

    @property
    def configured(self) -> bool:
        return self._client is not None

    def _require_client(self) -> Any:
        if self._client is None:
            logger.error("Admin operation rejected: SUPABASE_SERVICE_ROLE_KEY is not configured")
            raise ServiceUnavailable(CONFIG_ERROR_MESSAGE, status_code=500)
        return self._client

    async def _identity_call(self, fn, *args, fallback: str) -> str:
        try:
            resp = await bounded_call(fn, *args, timeout_seconds=self.timeout_seconds)
        except TimeoutError as exc:
            raise UpstreamFailure("Identity provider timed out", status_code=504) from exc
        except Exception as exc:
            raise UpstreamFailure(provider_message(exc, fallback)) from exc
        user = getattr(resp, "user", None) if not isinstance(resp, dict) else resp.get("user")
        subject = subject_from_user(user)
        if subject is None:
            raise UpstreamFailure(fallback)
        return subject.id

    async def _grant_app_role(self, user_id: str, role: str) -> None:
        client = self._require_client()
        attrs = {"app_metadata": {"role": role}}
        try:
            await bounded_call(client.auth.admin.update_user_by_id, user_id, attrs, timeout_seconds=self.timeout_seconds)
        except TimeoutError as exc:
            raise UpstreamFailure("Identity provider timed out", status_code=504) from exc
        except Exception as exc:
            raise UpstreamFailure(provider_message(exc, "Failed to assign role")) from exc

    async def _write_profile_or_compensate(self, profile: Profile, *, grant_role: bool = False) -> None:
        assert self.directory is not None
        try:
            if grant_role:
                await self._grant_app_role(profile.id, coerce_role(profile.role))
            await self.directory.upsert(profile)
        except UpstreamFailure as exc:
            rolled_back = await self._delete_identity(profile.id)
            if not rolled_back:
                logger.error("Provisioning failed and identity %s could not be removed", profile.id)
            raise ProvisioningFailed(exc.message, user_id=profile.id, rolled_back=rolled_back) from exc

    async def _delete_identity(self, user_id: str) -> bool:
        client = self._require_client()
        try:
            await bounded_call(client.auth.admin.delete_user, user_id, timeout_seconds=self.timeout_seconds)
        except Exception as exc:
            logger.warning("Compensating delete failed: %s", exc.__class__.__name__)
            return False
        logger.info("Compensating delete removed identity %s", user_id)
        return True

    async def create_manager(self, *, name: str, email: str, phone: Optional[str] = None) -> ProvisionResult:
        client = self._require_client()
        temp_password = generate_temp_password()
        attrs = {
            "email": email,
            "password": temp_password,
            "email_confirm": True,
            "user_metadata": {"name": name, "role": "manager"},
            "app_metadata": {"role": "manager"},
        }
        user_id = await self._identity_call(client.auth.admin.create_user, attrs, fallback="Failed to create manager")
        await self._write_profile_or_compensate(
            Profile(id=user_id, email=email, name=name, role="manager", phone=phone or None)
        )
        logger.info("Manager created: %s", user_id)
        return ProvisionResult(user_id=user_id, email=email, name=name, role="manager", temp_password=temp_password)

    async def invite_user(self, *, email: str, role: str) -> ProvisionResult:
        client = self._require_client()
        role = coerce_role(role)
        name = display_name_from_email(email)
        options = {"data": {"role": role, "name": name}}
        user_id = await self._identity_call(
            client.auth.admin.invite_user_by_email, email, options, fallback="Failed to invite user"
        )
        await self._write_profile_or_compensate(
            Profile(id=user_id, email=email, name=name, role=role), grant_role=True
        )
        logger.info("User invited: %s (%s)", user_id, role)
        return ProvisionResult(user_id=user_id, email=email, name=name, role=role)


__all__ = [
    "AdminProvisioner",
    "ProvisionResult",
    "ProvisioningFailed",
    "generate_temp_password",
]
