"""
Single timeout policy for outbound identity/database calls.

supabase-py's sync client blocks, so calls run in a worker thread and the
awaiting task gives up after `timeout_seconds`. The thread is abandoned on
expiry; its eventual result is discarded.
"""
from __future__ import annotations

import functools
import os
from typing import Any, Callable, TypeVar

import anyio
import anyio.to_thread

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 5.0


def default_timeout() -> float:
    raw = (os.getenv("AUTH_CALL_TIMEOUT_SECONDS") or "").strip()
    try:
        value = float(raw) if raw else DEFAULT_TIMEOUT_SECONDS
    except ValueError:
        return DEFAULT_TIMEOUT_SECONDS
    return value if value > 0 else DEFAULT_TIMEOUT_SECONDS


async def bounded_call(fn: Callable[..., T], *args: Any, timeout_seconds: float, **kwargs: Any) -> T:
    """Run blocking `fn(*args, **kwargs)` in a thread, raising TimeoutError on expiry."""
    with anyio.fail_after(timeout_seconds):
        return await anyio.to_thread.run_sync(functools.partial(fn, *args, **kwargs), abandon_on_cancel=True)


__all__ = ["DEFAULT_TIMEOUT_SECONDS", "bounded_call", "default_timeout"]
