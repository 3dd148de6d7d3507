"""
Identity domain constants and simple helpers.

Why:
- Centralize allowed roles to avoid drift between the web layer, the admin
  provisioning code and the client session bootstrap.
- Any role string coming from tokens, profiles or local caches passes through
  `coerce_role` so an unknown value can never become a privilege.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Mapping, Optional

# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset({"admin", "manager", "tenant"})
DEFAULT_ROLE = "tenant"


def valid_role(value: object) -> Optional[str]:
    """Return the normalised role or None when `value` is not an allowed role."""
    if not isinstance(value, str):
        return None
    role = value.strip().lower()
    return role if role in ALLOWED_ROLES else None


def coerce_role(value: object) -> str:
    return valid_role(value) or DEFAULT_ROLE


def home_path(role: str) -> str:
    """Dashboard root for a role, e.g. `/manager`."""
    return f"/{coerce_role(role)}"


def display_name_from_email(email: str) -> str:
    local = (email or "").split("@", 1)[0].strip()
    return local or "User"


@dataclass(frozen=True)
class AuthUser:
    """Resolved session user as seen by handlers and the client cache."""

    id: str
    email: str
    name: str
    role: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> Optional["AuthUser"]:
        """Build a user from a stored mapping; incomplete records yield None."""
        if not isinstance(data, Mapping):
            return None
        uid = str(data.get("id") or "").strip()
        email = str(data.get("email") or "").strip()
        role = data.get("role")
        if not uid or not email or not role:
            return None
        name = str(data.get("name") or "").strip() or display_name_from_email(email)
        return cls(id=uid, email=email, name=name, role=coerce_role(role))


@dataclass(frozen=True)
class Profile:
    """Application profile row keyed by the identity provider's user id."""

    id: str
    email: str = ""
    name: str = ""
    role: Optional[str] = None
    phone: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Profile":
        return cls(
            id=str(row.get("id") or ""),
            email=str(row.get("email") or ""),
            name=str(row.get("name") or ""),
            role=valid_role(row.get("role")),
            phone=row.get("phone") or None,
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": coerce_role(self.role),
            "phone": self.phone,
        }


__all__ = [
    "ALLOWED_ROLES",
    "DEFAULT_ROLE",
    "AuthUser",
    "Profile",
    "coerce_role",
    "display_name_from_email",
    "home_path",
    "valid_role",
]
