"""
Ephemeral conversation cache.

The cache is only an optimization in front of the durable store: entries
expire after a TTL and any backend failure is absorbed by the coordinator.
Values are plain JSON-compatible dicts (ConversationContext.to_dict()).

Backends:
- InMemoryConversationCache: process-local dict with per-key expiry and a
  background cleanup task (default backend)
- RedisConversationCache: redis.asyncio with SETEX (ENABLE_REDIS=true)

Key policy: conversation:{session_id}
"""

import asyncio
import copy
import json
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple, runtime_checkable

import redis.asyncio as redis
from redis.exceptions import RedisError

from salesagent.config.logging_config import get_logger

logger = get_logger(__name__)

CACHE_KEY_PREFIX = "conversation"
DEFAULT_SESSION_TTL_SECONDS = 30 * 60


def cache_key(session_id: str) -> str:
    """Cache key for a session's conversation context."""
    return f"{CACHE_KEY_PREFIX}:{session_id}"


@runtime_checkable
class ConversationCache(Protocol):
    """Key/value cache with per-key time-to-live."""

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the cached value, or None if absent or expired."""
        ...

    async def set(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> None:
        """Store value under key for ttl_seconds."""
        ...

    async def delete(self, key: str) -> None:
        """Remove key (no-op when absent)."""
        ...


class InMemoryConversationCache:
    """
    Process-local TTL cache.

    Values are deep-copied on the way in and out so callers can never mutate
    a cached entry in place. Expired entries are dropped lazily on read and
    swept periodically once start() has been called.
    """

    def __init__(self,
                 cleanup_interval_seconds: int = 300,
                 clock: Callable[[], float] = time.monotonic):
        self._entries: Dict[str, Tuple[Dict[str, Any], float]] = {}
        self._cleanup_interval = cleanup_interval_seconds
        self._clock = clock
        self._cleanup_task: Optional[asyncio.Task] = None
        self._running = False

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry[1] > self._clock()

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if expires_at <= self._clock():
            del self._entries[key]
            logger.trace(f"🔄 Cache entry {key} expired on read")
            return None

        logger.debug(f"🎯 Cache hit: {key}")
        return copy.deepcopy(value)

    async def set(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> None:
        self._entries[key] = (copy.deepcopy(value), self._clock() + ttl_seconds)
        logger.debug(f"💾 Cached {key} in memory (ttl={ttl_seconds}s)")

    async def delete(self, key: str) -> None:
        if self._entries.pop(key, None) is not None:
            logger.debug(f"🗑️ Deleted {key} from memory cache")

    def purge_expired(self) -> int:
        """Drop expired entries. Returns the number removed."""
        now = self._clock()
        expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def start(self) -> None:
        """Start background cleanup task."""
        if self._running:
            logger.warning("🔄 Memory cache cleanup already running")
            return

        self._running = True
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())
        logger.info(f"✅ Memory cache started (cleanup interval: {self._cleanup_interval}s)")

    async def stop(self) -> None:
        """Stop background cleanup task."""
        if not self._running:
            return

        self._running = False
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass

        logger.info("✅ Memory cache stopped")

    async def _cleanup_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._cleanup_interval)
                removed = self.purge_expired()
                if removed:
                    logger.info(
                        f"🔄 Cleaned up {removed} expired conversation entries "
                        f"({len(self._entries)} remaining)"
                    )
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"💥 Error in cache cleanup task: {e}")


class RedisConversationCache:
    """
    Redis-backed TTL cache (JSON payloads, SETEX).

    Redis errors propagate to the caller; the coordinator treats them as a
    cache miss / skipped write.
    """

    def __init__(self, client: "redis.Redis"):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisConversationCache":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = await self._client.get(key)
        if raw is None:
            return None
        logger.debug(f"🎯 Cache hit: {key} (redis)")
        return json.loads(raw)

    async def set(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> None:
        await self._client.setex(key, ttl_seconds, json.dumps(value))
        logger.debug(f"💾 Cached {key} in redis (ttl={ttl_seconds}s)")

    async def delete(self, key: str) -> None:
        await self._client.delete(key)
        logger.debug(f"🗑️ Deleted {key} from redis")

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.warning(f"⚠️ Redis ping failed: {e}")
            return False

    async def start(self) -> None:
        if await self.ping():
            logger.info("✅ Redis conversation cache connected")
        else:
            logger.warning("⚠️ Redis unreachable at startup; conversations will use the store only")

    async def stop(self) -> None:
        await self._client.aclose()
        logger.info("✅ Redis conversation cache closed")
