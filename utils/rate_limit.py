"""Rate limiting utilities using throttled-py"""
import os
from datetime import timedelta
from throttled import Throttled, RateLimiterType, store, rate_limiter

from core.config import logger, TRACK_RATE_LIMIT_PER_MINUTE


# Initialize storage - Redis for production, MemoryStore for development
try:
    redis_url = os.getenv("REDIS_URL", "").strip()
    if redis_url:
        # RedisStore expects the URL string, not a Redis client object
        storage = store.RedisStore(server=redis_url)
        logger.info("[rate_limit] Using Redis for rate limiting")
    else:
        storage = store.MemoryStore()
        logger.warning("[rate_limit] REDIS_URL not set - using in-memory storage (not suitable for production with multiple workers)")
except Exception as ex:
    # Fallback to memory storage if Redis is not available
    storage = store.MemoryStore()
    logger.warning(f"[rate_limit] Redis connection failed, using in-memory storage: {ex}")

# Tracking beacon limiter: TRACK_RATE_LIMIT_PER_MINUTE hits per IP per minute
track_throttle = Throttled(
    using=RateLimiterType.FIXED_WINDOW.value,
    quota=rate_limiter.per_duration(timedelta(minutes=1), limit=TRACK_RATE_LIMIT_PER_MINUTE),
    store=storage,
)


def check_track_rate_limit(ip: str) -> bool:
    """
    Check if a tracking hit from this IP may be recorded.

    Args:
        ip: Normalized client IP ("unknown" when unresolvable)

    Returns:
        True if allowed
    """
    try:
        result = track_throttle.limit(f"track:{ip}", cost=1)
        return not result.limited
    except Exception as ex:
        logger.warning(f"[rate_limit] Tracking rate limit check failed: {ex}")
        # Fail open - record the hit if the limiter is down
        return True
