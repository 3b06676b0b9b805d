"""Fixed-window rate limiting over the key-value store.

Every request increments the window counter first; the increment that creates
the key also gives it a TTL of one window. A request whose increment lands
above ``limit`` is denied until the key expires. Any store problem denies the
request.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from admission.config import RATE_LIMIT_WINDOW_SECONDS, OperationClass, rate_limit_key
from admission.kv_store import KeyValueStore
from api.utils.debug import print__rate_limit_debug


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: datetime
    reason: Optional[str] = None


def _denied(reason: str, window_seconds: int) -> RateLimitResult:
    return RateLimitResult(
        allowed=False,
        remaining=0,
        reset_at=datetime.now(timezone.utc) + timedelta(seconds=window_seconds),
        reason=reason,
    )


async def check_rate_limit(
    store: Optional[KeyValueStore],
    user_id: str,
    operation: OperationClass,
    limit: int,
    window_seconds: int = RATE_LIMIT_WINDOW_SECONDS,
) -> RateLimitResult:
    """Count one request against the window; never raises."""
    if store is None:
        print__rate_limit_debug(
            f"🔒 RATE LIMIT: store unconfigured, denying {operation.value} for {user_id}"
        )
        return _denied("rate_limit_unavailable", window_seconds)

    key = rate_limit_key(operation, user_id)
    now = datetime.now(timezone.utc)
    try:
        # INCR is the single atomic step; concurrent requests each get their own count
        new_count = await store.incr(key)
        ttl = await store.ttl(key)
        # A counter without TTL would never reset, whether allowed or denied
        if new_count == 1 or ttl < 0:
            await store.expire(key, window_seconds)
            ttl = window_seconds
            if new_count == 1:
                print__rate_limit_debug(f"🆕 RATE LIMIT: new window for {key}")
        reset_at = now + timedelta(seconds=ttl if ttl > 0 else window_seconds)

        if new_count > limit:
            print__rate_limit_debug(f"🚫 RATE LIMIT: {key} at {new_count}/{limit}, ttl={ttl}")
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_at=reset_at,
                reason="rate_limited",
            )
        return RateLimitResult(
            allowed=True,
            remaining=limit - new_count,
            reset_at=reset_at,
        )
    except Exception as exc:  # pylint: disable=broad-except
        print__rate_limit_debug(
            f"🔒 RATE LIMIT: store error for {key}, failing closed: {type(exc).__name__}: {exc}"
        )
        return _denied("rate_limit_unavailable", window_seconds)
