"""Request rate limiting shared by the public chat endpoints.

Each app carries its own ``chat_rate_limit`` in ``app.state.runtime.settings``.
slowapi hands a dynamic limit only the bucket key, so the key carries the
limit in front of the client address: ``"60/minute@203.0.113.7"``.
"""

from __future__ import annotations

from fastapi import Request
from slowapi import Limiter

from .settings import get_settings

_SEPARATOR = "@"


def get_client_ip(request: Request) -> str:
    """Extract a best-effort client IP for rate limiting.

    Prefer ``X-Forwarded-For`` (first hop) if present, otherwise use the
    socket peer address.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is None:
        return "unknown"
    return request.client.host


def _configured_limit(request: Request) -> str:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        return get_settings().chat_rate_limit
    return runtime.settings.chat_rate_limit


def rate_limit_key(request: Request) -> str:
    return f"{_configured_limit(request)}{_SEPARATOR}{get_client_ip(request)}"


def chat_rate_limit(key: str) -> str:
    """Limit for a bucket key built by :func:`rate_limit_key`."""

    return key.split(_SEPARATOR, 1)[0]


limiter = Limiter(key_func=rate_limit_key)
