"""
Profile directory adapter (Supabase `profiles` table).

Why:
    Role resolution, the admin provisioning flow and the admin user listing
    all read or write the same table. This adapter wraps the postgrest calls
    behind small async methods that return `Profile` DTOs.

Security:
    - Server-side callers pass a client built with the service key, which
      bypasses row-level security; browser-side callers only ever see rows
      their own policies allow.
    - Lookups never raise: a failed read is logged and reported as "no
      profile" so that role resolution can fall through to its default.
"""
from __future__ import annotations

from typing import Any, List, Optional
import logging

from .domain import Profile
from .errors import UpstreamFailure, provider_message
from .timeouts import bounded_call, default_timeout

logger = logging.getLogger("rentwise.identity_access")

PROFILE_COLUMNS = "id, email, name, role, phone"


def _rows(resp: Any) -> Any:
    """Return `.data` of a postgrest response; `maybe_single` may yield None."""
    if resp is None:
        return None
    if isinstance(resp, dict):
        return resp.get("data")
    return getattr(resp, "data", None)


class ProfileDirectory:
    def __init__(self, client: Any, *, table: str = "profiles", timeout_seconds: float | None = None) -> None:
        self._client = client
        self._table = table
        self.timeout_seconds = timeout_seconds or default_timeout()

    def _fetch_sync(self, user_id: str) -> Any:
        return (
            self._client.table(self._table)
            .select(PROFILE_COLUMNS)
            .eq("id", user_id)
            .maybe_single()
            .execute()
        )

    async def fetch(self, user_id: str) -> Optional[Profile]:
        """Return the profile for `user_id`, or None when missing or unreadable."""
        if not user_id:
            return None
        try:
            resp = await bounded_call(self._fetch_sync, user_id, timeout_seconds=self.timeout_seconds)
        except TimeoutError:
            logger.warning("Profile lookup timed out after %.1fs", self.timeout_seconds)
            return None
        except Exception as exc:
            logger.warning("Profile lookup failed: %s: %s", exc.__class__.__name__, provider_message(exc, ""))
            return None
        row = _rows(resp)
        if isinstance(row, list):
            row = row[0] if row else None
        if not isinstance(row, dict):
            return None
        return Profile.from_row(row)

    def _upsert_sync(self, row: dict) -> Any:
        return self._client.table(self._table).upsert(row).execute()

    async def upsert(self, profile: Profile) -> None:
        """Insert or update a profile row; raises UpstreamFailure on error."""
        try:
            await bounded_call(self._upsert_sync, profile.to_row(), timeout_seconds=self.timeout_seconds)
        except TimeoutError as exc:
            raise UpstreamFailure("Profile write timed out", status_code=504) from exc
        except Exception as exc:
            raise UpstreamFailure(provider_message(exc, "Failed to create profile")) from exc

    def _list_sync(self, limit: int, offset: int) -> Any:
        return (
            self._client.table(self._table)
            .select(PROFILE_COLUMNS)
            .order("name")
            .range(offset, offset + limit - 1)
            .execute()
        )

    async def list_profiles(self, *, limit: int = 50, offset: int = 0) -> List[Profile]:
        limit = max(1, min(200, int(limit or 50)))
        offset = max(0, int(offset or 0))
        try:
            resp = await bounded_call(self._list_sync, limit, offset, timeout_seconds=self.timeout_seconds)
        except TimeoutError as exc:
            raise UpstreamFailure("Profile listing timed out", status_code=504) from exc
        except Exception as exc:
            raise UpstreamFailure(provider_message(exc, "Failed to fetch users"), status_code=500) from exc
        rows = _rows(resp) or []
        return [Profile.from_row(r) for r in rows if isinstance(r, dict) and r.get("id")]


__all__ = ["PROFILE_COLUMNS", "ProfileDirectory"]
