"""
Client-side session cache: the last resolved user, read at startup.

Why: The session bootstrap shows the cached user immediately and confirms it
with the identity provider afterwards. The cached role is a UI hint only;
the server always re-resolves the role from the token and profile table.

Format: one namespaced entry (default `rentwise_auth_user`) holding
`{id, email, name, role}`. The file backend keeps other keys in the same
JSON document untouched.
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Protocol
import json
import logging
import os
import tempfile

from .domain import AuthUser

logger = logging.getLogger("rentwise.identity_access")

STORAGE_KEY = "rentwise_auth_user"


class SessionCacheProtocol(Protocol):
    def load(self) -> Optional[AuthUser]: ...

    def save(self, user: Optional[AuthUser]) -> None: ...

    def clear(self) -> None: ...


class MemorySessionCache:
    def __init__(self, key: str = STORAGE_KEY) -> None:
        self.key = key
        self._data: Dict[str, str] = {}

    def load(self) -> Optional[AuthUser]:
        raw = self._data.get(self.key)
        if not raw:
            return None
        try:
            return AuthUser.from_dict(json.loads(raw))
        except ValueError:
            return None

    def save(self, user: Optional[AuthUser]) -> None:
        if user is None:
            self.clear()
            return
        self._data[self.key] = json.dumps(user.to_dict())

    def clear(self) -> None:
        self._data.pop(self.key, None)


class SessionCache:
    """JSON-file backed cache; unreadable or partial data reads as "no session"."""

    def __init__(self, path: str | Path, key: str = STORAGE_KEY) -> None:
        self.path = Path(path)
        self.key = key

    def _read_all(self) -> dict:
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            logger.warning("Session cache unreadable: %s", exc.__class__.__name__)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".session-", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp, self.path)
        except OSError:
            Path(tmp).unlink(missing_ok=True)
            raise

    def load(self) -> Optional[AuthUser]:
        return AuthUser.from_dict(self._read_all().get(self.key))

    def save(self, user: Optional[AuthUser]) -> None:
        if user is None:
            self.clear()
            return
        data = self._read_all()
        data[self.key] = user.to_dict()
        self._write_all(data)

    def clear(self) -> None:
        data = self._read_all()
        if self.key in data:
            data.pop(self.key)
            self._write_all(data)


__all__ = ["MemorySessionCache", "STORAGE_KEY", "SessionCache", "SessionCacheProtocol"]
