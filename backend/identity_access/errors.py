"""
Error taxonomy shared by the identity code and the web adapter.

Every error carries a stable `code` (for logs and tests), a user-facing
`message` and the HTTP status the web layer maps it to. Internal detail such
as provider stack traces never goes into `message` for auth failures.
"""
from __future__ import annotations

from typing import Any, Iterable, Mapping


class AppError(Exception):
    code = "app_error"
    status_code = 500
    default_message = "Internal Server Error"

    def __init__(self, message: str | None = None, *, status_code: int | None = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_body(self) -> dict[str, Any]:
        return {"message": self.message}


class MissingAuth(AppError):
    code = "missing_auth"
    status_code = 401
    default_message = "Missing or invalid authorization header"


class InvalidToken(AppError):
    code = "invalid_token"
    status_code = 401
    default_message = "Invalid or expired token"


class Forbidden(AppError):
    code = "forbidden"
    status_code = 403
    default_message = "You don't have permission to access this resource"


class ServiceUnavailable(AppError):
    code = "service_unavailable"
    status_code = 503
    default_message = "Authentication service unavailable"


class ValidationFailed(AppError):
    code = "validation_failed"
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, errors: Iterable[Mapping[str, str]] = (), message: str | None = None):
        super().__init__(message)
        self.errors = [{"field": str(e.get("field", "")), "message": str(e.get("message", ""))} for e in errors]

    def to_body(self) -> dict[str, Any]:
        return {"message": self.message, "errors": self.errors}


class UpstreamFailure(AppError):
    """Identity or database call failed; `message` is the provider's message."""

    code = "upstream_failure"
    status_code = 400
    default_message = "Upstream service error"


# --- User-facing translation ----------------------------------------------------

PERMISSION_MESSAGE = "You don’t have permission to perform this action."
SESSION_EXPIRED_MESSAGE = "Your session has expired. Please sign in again."
NETWORK_MESSAGE = "Network error. Please check your connection and try again."
GENERIC_MESSAGE = "Something went wrong. Please try again."


def _text_part(err: object, name: str) -> str | None:
    if isinstance(err, Mapping):
        val = err.get(name)
    else:
        val = getattr(err, name, None)
    return val if isinstance(val, str) and val else None


def friendly_error_message(err: object) -> str:
    """Translate a provider error (exception, mapping or string) into UI copy."""
    if isinstance(err, str):
        parts = [err]
    else:
        parts = [_text_part(err, k) for k in ("message", "details", "hint")]
        if not any(parts) and isinstance(err, Exception):
            parts = [str(err)]
    combined = " ".join(p for p in parts if p).strip()
    lower = combined.lower()

    if any(s in lower for s in ("row level security", "permission denied", "not allowed")):
        return PERMISSION_MESSAGE
    if any(s in lower for s in ("jwt expired", "invalid jwt", "invalid token")):
        return SESSION_EXPIRED_MESSAGE
    if any(s in lower for s in ("failed to fetch", "networkerror", "network error")):
        return NETWORK_MESSAGE
    if combined:
        return combined
    if isinstance(err, str) and err:
        return err
    if isinstance(err, Exception) and str(err):
        return str(err)
    return GENERIC_MESSAGE


def provider_message(exc: BaseException, fallback: str) -> str:
    """Best-effort message from a supabase/postgrest exception."""
    msg = _text_part(exc, "message")
    if msg:
        return msg
    return str(exc) or fallback


__all__ = [
    "AppError",
    "Forbidden",
    "InvalidToken",
    "MissingAuth",
    "ServiceUnavailable",
    "UpstreamFailure",
    "ValidationFailed",
    "friendly_error_message",
    "provider_message",
]
