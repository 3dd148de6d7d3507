"""
Shared cookie policy for the web layer.

Design:
    The helper is pure: it accepts an environment string and returns the
    cookie flags. Callers decide where the environment comes from (settings).
"""

from __future__ import annotations


def cookie_opts(environment: str) -> dict:
    """Return cookie flags for the CSRF cookie.

    Returns a mapping with keys:
      - secure: True in production-like environments
      - samesite: "strict"  # the CSRF cookie is never needed cross-site
    """
    env_l = (environment or "").lower()
    secure = env_l in {"prod", "production", "stage", "staging"}
    return {"secure": secure, "samesite": "strict"}
