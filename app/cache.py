import json
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.config import settings

logger = logging.getLogger(__name__)

# Session.info key holding the post ids invalidated inside a transaction.
PENDING_INVALIDATIONS = "pending_post_invalidations"


class CacheManager:
    """
    Cache-aside store for rendered post pages and post details.

    Redis is optional: when it is not connected, or a call fails, reads
    report a miss and writes are dropped.  The database stays the source
    of truth either way.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits: int = 0
        self._misses: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection pool at application startup."""
        self._redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", settings.REDIS_URL)
        except RedisError as exc:  # pragma: no cover
            logger.warning("Redis ping failed, running without cache: %s", exc)
            await self._redis.aclose()
            self._redis = None

    async def disconnect(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    @property
    def connected(self) -> bool:
        return self._redis is not None

    # ------------------------------------------------------------------
    # Core cache operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> dict | list | None:
        """Return the decoded value under *key*, or None on a miss or error."""
        if not self._redis:
            self._misses += 1
            return None
        try:
            data = await self._redis.get(key)
        except RedisError as exc:
            logger.debug("Cache GET error for key=%r: %s", key, exc)
            self._misses += 1
            return None
        if data is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(data)

    async def set(self, key: str, value: dict | list, ttl: int | None = None) -> None:
        if not self._redis:
            return
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        except (RedisError, TypeError, ValueError) as exc:
            logger.debug("Cache SET error for key=%r: %s", key, exc)

    async def delete_pattern(self, pattern: str) -> None:
        """Delete every key matching *pattern* (SCAN, never KEYS)."""
        if not self._redis:
            return
        try:
            keys = [key async for key in self._redis.scan_iter(match=pattern)]
            if keys:
                await self._redis.delete(*keys)
                logger.debug("Cache invalidated %d key(s) matching %r", len(keys), pattern)
        except RedisError as exc:
            logger.debug("Cache DELETE_PATTERN error for pattern=%r: %s", pattern, exc)

    # ------------------------------------------------------------------
    # Post aggregate invalidation
    # ------------------------------------------------------------------

    async def invalidate_post(self, post_id: str | None = None, session=None) -> None:
        """
        Invalidate post caches after any write to the aggregate.

        List pages are always purged: a create, delete, like or comment
        changes what the pages show.  When *post_id* is given its detail
        entry is dropped as well.

        When *session* is given the invalidation is also recorded on it and
        replayed by ``invalidate_committed`` once the transaction commits,
        so a read that re-cached the pre-commit state is purged too.
        """
        await self.delete_pattern("posts:list:*")
        if post_id is not None:
            await self.delete_pattern(f"posts:detail:{post_id}")
        if session is not None:
            session.info.setdefault(PENDING_INVALIDATIONS, set()).add(post_id)

    async def invalidate_committed(self, session) -> None:
        """Replay the invalidations recorded on *session* after its commit."""
        pending = session.info.pop(PENDING_INVALIDATIONS, None)
        if not pending:
            return
        await self.delete_pattern("posts:list:*")
        for post_id in pending:
            if post_id is not None:
                await self.delete_pattern(f"posts:detail:{post_id}")

    def discard_pending(self, session) -> None:
        session.info.pop(PENDING_INVALIDATIONS, None)

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def stats(self) -> dict:
        total = self._hits + self._misses
        return {
            "connected": self.connected,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


# Module-level singleton shared by every request.
cache = CacheManager()
