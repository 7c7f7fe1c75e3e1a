"""Redis implementation of the best-effort cache.

The cache is never a correctness dependency. Every operation returns a
fallback instead of raising, and a lost connection leaves the instance in
degraded (always-miss) mode until ``reconnect`` succeeds.
"""
import json
import logging
import time
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence
import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError
from devscore.domain.cache_interface import ICacheStore
from devscore.domain.errors import CacheUnavailable
from devscore.infrastructure.settings import Settings


logger = logging.getLogger(__name__)

CONNECTION_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError, CacheUnavailable)


class ResilientCache(ICacheStore):
    """Namespaced JSON cache over ``redis.asyncio`` that degrades to misses."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[redis.Redis] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """Initialize the cache.

        No connection is opened here; the client connects on first use.

        Args:
            settings: Redis URL, key prefix, default TTL and log throttling
            client: Pre-built Redis client (used by tests)
            clock: Monotonic clock for error-log throttling
        """
        self._settings = settings or Settings()
        self._prefix = self._settings.cache_prefix
        self._default_ttl = self._settings.cache_default_ttl
        self._error_log_interval = self._settings.cache_error_log_interval
        self._clock = clock
        self._last_error_log: Optional[float] = None
        self._degraded = False
        self._client = client if client is not None else self._create_client()

    def _create_client(self) -> redis.Redis:
        return redis.from_url(
            self._settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=self._settings.request_timeout,
            socket_timeout=self._settings.request_timeout
        )

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def _ttl(self, ttl: Optional[int]) -> int:
        return int(ttl or self._default_ttl)

    def _log_error(self, message: str, error: Exception) -> None:
        """Log at most once per throttling interval."""
        now = self._clock()
        if self._last_error_log is None or now - self._last_error_log >= self._error_log_interval:
            logger.warning(f"{message}: {error}")
            self._last_error_log = now

    @staticmethod
    def _decode(raw: Optional[str]) -> Optional[Any]:
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.debug("Discarding undecodable cache value")
            return None

    async def _run(self, operation: str, action: Callable[[redis.Redis], Awaitable[Any]], fallback: Any) -> Any:
        """Run one backend action, converting every failure into ``fallback``."""
        try:
            if self._degraded:
                raise CacheUnavailable("cache backend marked unavailable")
            return await action(self._client)
        except CONNECTION_ERRORS as e:
            self._degraded = True
            self._log_error(f"Redis unavailable during {operation} (continuing without cache)", e)
            return fallback
        except (RedisError, TypeError, ValueError) as e:
            self._log_error(f"Cache {operation} error", e)
            return fallback

    async def get(self, key: str) -> Optional[Any]:
        cache_key = self._key(key)

        async def action(client: redis.Redis) -> Optional[Any]:
            value = self._decode(await client.get(cache_key))
            logger.debug(f"Cache {'hit' if value is not None else 'miss'} for key: {cache_key}")
            return value

        return await self._run("get", action, None)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        cache_key = self._key(key)
        expiry = self._ttl(ttl)

        async def action(client: redis.Redis) -> bool:
            await client.set(cache_key, json.dumps(value), ex=expiry)
            logger.debug(f"Cache set for key: {cache_key}, TTL: {expiry}s")
            return True

        return await self._run("set", action, False)

    async def delete(self, key: str) -> bool:
        cache_key = self._key(key)

        async def action(client: redis.Redis) -> bool:
            return await client.delete(cache_key) > 0

        return await self._run("delete", action, False)

    async def exists(self, key: str) -> bool:
        cache_key = self._key(key)

        async def action(client: redis.Redis) -> bool:
            return await client.exists(cache_key) > 0

        return await self._run("exists", action, False)

    async def mget(self, keys: Sequence[str]) -> List[Optional[Any]]:
        if not keys:
            return []
        cache_keys = [self._key(key) for key in keys]

        async def action(client: redis.Redis) -> List[Optional[Any]]:
            return [self._decode(raw) for raw in await client.mget(cache_keys)]

        return await self._run("mget", action, [None] * len(keys))

    async def mset(self, mapping: Mapping[str, Any], ttl: Optional[int] = None) -> bool:
        if not mapping:
            return True
        expiry = self._ttl(ttl)
        entries = [(self._key(key), json.dumps(value)) for key, value in mapping.items()]

        async def action(client: redis.Redis) -> bool:
            async with client.pipeline(transaction=True) as pipe:
                for cache_key, serialized in entries:
                    pipe.set(cache_key, serialized, ex=expiry)
                await pipe.execute()
            logger.debug(f"Cache mset for {len(entries)} keys")
            return True

        return await self._run("mset", action, False)

    async def increment(self, key: str, amount: int = 1, ttl: Optional[int] = None) -> Optional[int]:
        cache_key = self._key(key)
        expiry = self._ttl(ttl)

        async def action(client: redis.Redis) -> int:
            async with client.pipeline(transaction=True) as pipe:
                pipe.incrby(cache_key, amount)
                pipe.expire(cache_key, expiry)
                value, _ = await pipe.execute()
            return int(value)

        return await self._run("increment", action, None)

    async def get_ttl(self, key: str) -> Optional[int]:
        cache_key = self._key(key)

        async def action(client: redis.Redis) -> int:
            return int(await client.ttl(cache_key))

        return await self._run("ttl", action, None)

    async def flush(self, pattern: str = "*") -> bool:
        """Delete namespaced keys matching ``pattern``."""
        match = self._key(pattern)

        async def action(client: redis.Redis) -> bool:
            keys = [key async for key in client.scan_iter(match=match)]
            if keys:
                await client.delete(*keys)
            logger.info(f"Flushed {len(keys)} keys matching pattern: {match}")
            return True

        return await self._run("flush", action, False)

    async def get_or_set(
        self,
        key: str,
        producer: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None
    ) -> Any:
        cached = await self.get(key)
        if cached is not None:
            return cached

        value = await producer()
        await self.set(key, value, ttl)
        return value

    def is_healthy(self) -> bool:
        return not self._degraded

    async def reconnect(self) -> bool:
        """Replace the client and leave degraded mode if Redis answers."""
        try:
            await self._client.aclose()
        except (RedisError, OSError) as e:
            logger.debug(f"Ignoring error while closing stale Redis client: {e}")

        self._client = self._create_client()
        try:
            await self._client.ping()
        except CONNECTION_ERRORS as e:
            self._degraded = True
            self._log_error("Redis reconnect failed (continuing without cache)", e)
            return False

        self._degraded = False
        logger.info("Connected to Redis")
        return True

    async def close(self) -> None:
        """Close the Redis connection pool."""
        try:
            await self._client.aclose()
        except (RedisError, OSError) as e:
            logger.debug(f"Ignoring error while closing Redis client: {e}")
        logger.info("Closed Redis connection")
