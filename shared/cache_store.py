"""
Redis-backed shared cache store.

One store is shared by every producer instance. Besides TTL'd key/value
entries and counters it carries the pub/sub channel used by the event bus and
the capped lists backing notification history. Key/value and list failures
surface as CacheUnavailable; pub/sub failures surface as TransportError.
"""

from typing import List, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.logging import get_logger
from shared.errors import CacheUnavailable, TransportError

CONNECTION_ERRORS = (RedisError, OSError)


class RedisSubscription:
    """A live subscription to one pub/sub channel."""

    def __init__(self, pubsub: "redis.client.PubSub", channel: str):
        self.pubsub = pubsub
        self.channel = channel
        self.logger = get_logger("shared.cache_store.subscription")

    async def get_message(self, timeout: float = 1.0) -> Optional[str]:
        """Block up to ``timeout`` seconds for the next published payload."""
        try:
            message = await self.pubsub.get_message(ignore_subscribe_messages=True, timeout=timeout)
        except CONNECTION_ERRORS as e:
            raise TransportError("Subscription receive failed", {"channel": self.channel, "error": str(e)}) from e

        if message is None or message.get("type") != "message":
            return None
        return message["data"]

    async def close(self):
        """Unsubscribe and release the connection."""
        try:
            await self.pubsub.unsubscribe(self.channel)
        except CONNECTION_ERRORS as e:
            self.logger.warning("Unsubscribe failed", channel=self.channel, error=str(e))
        finally:
            await self.pubsub.aclose()


class RedisCacheStore:
    """Shared cache store over Redis."""

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self.logger = get_logger("shared.cache_store")
        self.redis: Optional[redis.Redis] = None

    async def start(self) -> bool:
        """Create the client. A failed ping is logged, not raised."""
        self.redis = redis.from_url(
            self.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30
        )

        if await self.ping():
            self.logger.info("Redis cache store started", redis_url=self.redis_url)
            return True

        self.logger.warning("Redis unreachable at start; cache will degrade to misses", redis_url=self.redis_url)
        return False

    async def stop(self):
        """Close the client."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis cache store stopped")

    def _client(self) -> redis.Redis:
        if self.redis is None:
            raise CacheUnavailable("Cache store not started")
        return self.redis

    async def ping(self) -> bool:
        """Check Redis reachability."""
        if self.redis is None:
            return False
        try:
            return bool(await self.redis.ping())
        except CONNECTION_ERRORS:
            return False

    async def health_status(self) -> str:
        """Return healthy, unhealthy or unavailable."""
        if self.redis is None:
            return "unavailable"
        return "healthy" if await self.ping() else "unhealthy"

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._client().get(key)
        except CONNECTION_ERRORS as e:
            raise CacheUnavailable("Cache read failed", {"key": key, "error": str(e)}) from e

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int):
        try:
            await self._client().setex(key, ttl_seconds, value)
        except CONNECTION_ERRORS as e:
            raise CacheUnavailable("Cache write failed", {"key": key, "error": str(e)}) from e

    async def delete(self, *keys: str) -> int:
        try:
            return await self._client().delete(*keys)
        except CONNECTION_ERRORS as e:
            raise CacheUnavailable("Cache delete failed", {"keys": list(keys), "error": str(e)}) from e

    async def increment(self, key: str) -> int:
        try:
            return await self._client().incr(key)
        except CONNECTION_ERRORS as e:
            raise CacheUnavailable("Counter increment failed", {"key": key, "error": str(e)}) from e

    async def push_bounded(self, key: str, value: str, max_length: int, counter_key: Optional[str] = None) -> int:
        """Prepend ``value`` and trim the list to ``max_length`` in one transaction.

        When ``counter_key`` is given it is incremented in the same transaction,
        so the list and the counter never disagree about a write.
        """
        try:
            async with self._client().pipeline(transaction=True) as pipe:
                pipe.lpush(key, value)
                pipe.ltrim(key, 0, max_length - 1)
                pipe.llen(key)
                if counter_key is not None:
                    pipe.incr(counter_key)
                results = await pipe.execute()
            return results[2]
        except CONNECTION_ERRORS as e:
            raise CacheUnavailable("List append failed", {"key": key, "error": str(e)}) from e

    async def range_with_length(self, key: str, start: int, stop: int) -> Tuple[List[str], int]:
        """Read ``[start, stop]`` and the list length from one snapshot."""
        try:
            async with self._client().pipeline(transaction=True) as pipe:
                pipe.lrange(key, start, stop)
                pipe.llen(key)
                items, length = await pipe.execute()
            return items, length
        except CONNECTION_ERRORS as e:
            raise CacheUnavailable("List read failed", {"key": key, "error": str(e)}) from e

    async def publish(self, channel: str, data: str) -> int:
        """Publish to a channel; returns the number of receivers."""
        try:
            return await self._client().publish(channel, data)
        except (CONNECTION_ERRORS + (CacheUnavailable,)) as e:
            raise TransportError("Publish failed", {"channel": channel, "error": str(e)}) from e

    async def subscribe(self, channel: str) -> RedisSubscription:
        """Open a subscription on a dedicated pub/sub connection."""
        pubsub = None
        try:
            pubsub = self._client().pubsub()
            await pubsub.subscribe(channel)
        except (CONNECTION_ERRORS + (CacheUnavailable,)) as e:
            if pubsub is not None:
                await pubsub.aclose()
            raise TransportError("Subscribe failed", {"channel": channel, "error": str(e)}) from e

        self.logger.info("Subscribed to channel", channel=channel)
        return RedisSubscription(pubsub, channel)
