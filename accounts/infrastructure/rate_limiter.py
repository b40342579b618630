"""Per-client rate limiting via slowapi, stored in Redis."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from accounts.config import Settings


def build_limiter(settings: Settings) -> Limiter:
    """Fixed window of ``RATE_LIMIT_REQUESTS`` per ``RATE_LIMIT_WINDOW_SECONDS`` for every route.

    Disabled when no Redis URL is configured. Storage errors are logged and
    the request is let through.
    """
    return Limiter(
        key_func=get_remote_address,
        default_limits=[f"{settings.RATE_LIMIT_REQUESTS}/{settings.RATE_LIMIT_WINDOW_SECONDS} second"],
        storage_uri=settings.REDIS_URL or "memory://",
        enabled=bool(settings.REDIS_URL),
        swallow_errors=True,
    )
