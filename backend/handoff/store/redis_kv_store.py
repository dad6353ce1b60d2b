"""
Redis-backed key-value store.
Suitable for production and multi-instance deployments.
"""
import functools
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import (
    RedisError,
    ConnectionError as RedisConnectionError,
    TimeoutError as RedisTimeoutError
)
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)

from ..errors import StoreError
from .kv_store import KeyValueStore

logger = logging.getLogger(__name__)


def store_operation(func: Callable) -> Callable:
    """
    Retry transient connection failures, then surface anything left as StoreError.
    """
    retrying = retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=2.0),
        retry=retry_if_exception_type((RedisConnectionError, RedisTimeoutError)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )(func)

    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await retrying(self, *args, **kwargs)
        except RedisError as e:
            logger.error(f"Redis error in {func.__name__}: {e}")
            raise StoreError(f"Redis {func.__name__} failed: {e}") from e

    return wrapper


class RedisKeyValueStore(KeyValueStore):
    """
    Redis implementation of KeyValueStore.

    Features:
    - Connection pooling with keepalive and health checks
    - MULTI/EXEC transactions for write_batch
    - SCAN-based key listing (never KEYS)
    - Optional key prefix for sharing a database between deployments
    """

    def __init__(
        self,
        redis_url: str,
        key_prefix: str = "",
        max_connections: int = 50,
        socket_timeout: int = 5,
        socket_connect_timeout: int = 5,
        health_check_interval: int = 30
    ):
        """
        Initialize Redis store.

        Args:
            redis_url: Redis connection URL
            key_prefix: Namespace prepended to every key
            max_connections: Maximum connection pool size
            socket_timeout: Socket timeout in seconds
            socket_connect_timeout: Connection timeout in seconds
            health_check_interval: Pool health check interval in seconds
        """
        self.redis_url = redis_url
        self.key_prefix = key_prefix

        self.pool = redis.ConnectionPool.from_url(
            redis_url,
            max_connections=max_connections,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_connect_timeout,
            decode_responses=True,
            health_check_interval=health_check_interval,
            socket_keepalive=True
        )
        self.client: Redis = Redis(connection_pool=self.pool)

        logger.info(
            f"RedisKeyValueStore initialized "
            f"(url={redis_url}, prefix={key_prefix or '-'}, max_connections={max_connections})"
        )

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def _strip(self, key: str) -> str:
        return key[len(self.key_prefix):] if self.key_prefix else key

    @store_operation
    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(self._key(key))

    @store_operation
    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        await self.client.set(self._key(key), value, ex=ttl)

    @store_operation
    async def set_if_absent(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        result = await self.client.set(self._key(key), value, ex=ttl, nx=True)
        return bool(result)

    @store_operation
    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self.client.delete(*[self._key(k) for k in keys])

    @store_operation
    async def keys(self, pattern: str) -> List[str]:
        found = []
        async for key in self.client.scan_iter(match=self._key(pattern), count=200):
            found.append(self._strip(key))
        return found

    @store_operation
    async def sadd(self, key: str, *members: str) -> int:
        if not members:
            return 0
        return await self.client.sadd(self._key(key), *members)

    @store_operation
    async def srem(self, key: str, *members: str) -> int:
        if not members:
            return 0
        return await self.client.srem(self._key(key), *members)

    @store_operation
    async def smembers(self, key: str) -> Set[str]:
        return set(await self.client.smembers(self._key(key)))

    @store_operation
    async def write_batch(
        self,
        values: Dict[str, str],
        delete_keys: Iterable[str] = ()
    ) -> None:
        delete_keys = [self._key(k) for k in delete_keys]

        async with self.client.pipeline(transaction=True) as pipe:
            if delete_keys:
                pipe.delete(*delete_keys)
            for key, value in values.items():
                pipe.set(self._key(key), value)
            await pipe.execute()

        logger.debug(
            f"Applied batch: {len(values)} writes, {len(delete_keys)} deletes"
        )

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            logger.error(f"Redis ping failed: {e}")
            return False

    async def get_stats(self) -> Dict[str, Any]:
        try:
            info = await self.client.info('server')
            memory_info = await self.client.info('memory')
            return {
                "store_type": "redis",
                "redis_version": info.get('redis_version', 'unknown'),
                "used_memory_human": memory_info.get('used_memory_human', 'unknown'),
                "key_prefix": self.key_prefix,
            }
        except RedisError as e:
            logger.error(f"Redis error getting stats: {e}")
            return {
                "store_type": "redis",
                "error": str(e)
            }

    async def close(self) -> None:
        await self.client.aclose()
        await self.pool.disconnect()
        logger.info("✓ Closed Redis connection")


__all__ = ['RedisKeyValueStore', 'store_operation']
