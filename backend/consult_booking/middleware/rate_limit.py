# backend/consult_booking/middleware/rate_limit.py
"""
Rate limiting of booking creation.

Fixed window per client IP: INCR + TTL in Redis. If Redis is down the
check fails open, a booking is never refused because the limiter broke.
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from redis import Redis

from ..config import settings
from ..errors import RateLimitError
from ..redis_client import redis_client
from ..utils.hashing import hash_ip

logger = logging.getLogger(__name__)

KEY_PREFIX = "ratelimit:bookings"


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def check_limit(redis: Redis, key: str, limit: int, window: int) -> tuple[bool, Optional[int]]:
    """
    Count one hit against key. Returns (allowed, retry_after).

    limit <= 0 disables the check.
    """
    if limit <= 0:
        return True, None

    try:
        pipe = redis.pipeline()
        pipe.incr(key)
        pipe.ttl(key)
        count, ttl = pipe.execute()

        if ttl == -1:
            redis.expire(key, window)
            ttl = window

        if count > limit:
            return False, ttl

        return True, None

    except Exception as e:
        logger.error(f"Rate limit check failed: {e}")
        return True, None  # fail open


def get_rate_limit_redis() -> Redis:
    return redis_client


def enforce_booking_rate_limit(
    request: Request,
    redis: Redis = Depends(get_rate_limit_redis),
) -> None:
    """FastAPI dependency guarding POST /bookings."""
    key = f"{KEY_PREFIX}:{hash_ip(client_ip(request))}"
    allowed, retry_after = check_limit(
        redis,
        key,
        settings.effective_rate_limit_max,
        settings.rate_limit_window_seconds,
    )
    if not allowed:
        logger.warning(f"Booking rate limit exceeded for {key}")
        raise RateLimitError(retry_after=retry_after)
