# backend/consult_booking/services/slots/redis_store.py
"""
Redis availability cache using Sorted Sets.

Key format: availability:day:{date}
Value: Sorted Set where member = "{start_iso}|{end_iso}", score = expire_ts
       (unix timestamp when the slot falls inside the advance-notice window).

Query: ZRANGEBYSCORE key {now_ts} +inf → only still-bookable slots, so a
cache hit can never return a slot that starts before now + notice.
Sentinel: "__empty__" with score=0 marks "calculated, zero free slots".
Key TTL: config.cache_ttl_seconds.

Every operation reports an explicit outcome; Redis being down is
UNAVAILABLE, which callers treat exactly like MISS.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from redis import Redis, RedisError

from .config import SlotConfig, get_slot_config
from .intervals import Slot

logger = logging.getLogger(__name__)

EMPTY_SENTINEL = "__empty__"


class CacheOutcome(str, Enum):
    HIT = "hit"
    MISS = "miss"
    STORED = "stored"
    INVALIDATED = "invalidated"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class CacheLookup:
    outcome: CacheOutcome
    slots: list[Slot] = field(default_factory=list)

    @property
    def hit(self) -> bool:
        return self.outcome is CacheOutcome.HIT


def _encode(slot: Slot) -> str:
    return f"{slot.start.isoformat()}|{slot.end.isoformat()}"


def _decode(member: str | bytes) -> Slot:
    if isinstance(member, bytes):
        member = member.decode()
    start_str, end_str = member.split("|")
    return Slot(start=datetime.fromisoformat(start_str), end=datetime.fromisoformat(end_str))


class AvailabilityCache:
    """Short-TTL read-through cache of free slots per business date."""

    KEY_PREFIX = "availability:day"

    def __init__(self, redis: Redis | None, config: SlotConfig | None = None):
        self.redis = redis
        self.config = config or get_slot_config()

    def _key(self, dt: date) -> str:
        return f"{self.KEY_PREFIX}:{dt.isoformat()}"

    # ── Read ─────────────────────────────────────────────────────────────

    def get(self, dt: date, now: datetime) -> CacheLookup:
        """Free slots still bookable at `now`, or MISS / UNAVAILABLE."""
        if self.redis is None:
            return CacheLookup(CacheOutcome.UNAVAILABLE)

        key = self._key(dt)
        try:
            pipe = self.redis.pipeline()
            pipe.exists(key)
            pipe.zrangebyscore(key, now.timestamp(), "+inf")
            exists, members = pipe.execute()
        except (RedisError, OSError) as e:
            logger.warning(f"Availability cache read failed for {dt}: {e}")
            return CacheLookup(CacheOutcome.UNAVAILABLE)

        if not exists:
            logger.debug(f"Availability cache MISS {key}")
            return CacheLookup(CacheOutcome.MISS)

        slots = sorted(
            _decode(m) for m in members
            if (m.decode() if isinstance(m, bytes) else m) != EMPTY_SENTINEL
        )
        logger.debug(f"Availability cache HIT {key} ({len(slots)} slots)")
        return CacheLookup(CacheOutcome.HIT, slots)

    # ── Write ────────────────────────────────────────────────────────────

    def set(self, dt: date, slots: list[Slot], ttl: int | None = None) -> CacheOutcome:
        """Replace the cached free slots of a date."""
        if self.redis is None:
            return CacheOutcome.UNAVAILABLE

        key = self._key(dt)
        ttl = ttl or self.config.cache_ttl_seconds
        notice = self.config.min_advance

        try:
            pipe = self.redis.pipeline()
            pipe.delete(key)
            if slots:
                pipe.zadd(key, {_encode(s): (s.start - notice).timestamp() for s in slots})
            else:
                # Empty day: sentinel so EXISTS returns True
                pipe.zadd(key, {EMPTY_SENTINEL: 0})
            pipe.expire(key, ttl)
            pipe.execute()
        except (RedisError, OSError) as e:
            logger.warning(f"Availability cache write failed for {dt}: {e}")
            return CacheOutcome.UNAVAILABLE

        return CacheOutcome.STORED

    # ── Delete ───────────────────────────────────────────────────────────

    def invalidate(self, dt: date) -> CacheOutcome:
        """Drop the cached entry of a date; an absent entry is not an error."""
        if self.redis is None:
            return CacheOutcome.UNAVAILABLE

        key = self._key(dt)
        try:
            deleted = self.redis.delete(key)
        except (RedisError, OSError) as e:
            logger.warning(f"Availability cache invalidation failed for {dt}: {e}")
            return CacheOutcome.UNAVAILABLE

        logger.debug(f"Availability cache invalidated {key} (deleted={deleted})")
        return CacheOutcome.INVALIDATED
