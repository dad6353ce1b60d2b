"""
In-memory key-value store.
Suitable for development, tests and single-instance deployments.
"""
import asyncio
import fnmatch
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Set

from .kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class InMemoryKeyValueStore(KeyValueStore):
    """
    In-memory implementation of KeyValueStore.

    Features:
    - asyncio lock around every operation, so write_batch is atomic
    - Optional per-key TTL, checked lazily on access

    Limitations:
    - State lost on restart
    - Not shared across instances
    """

    def __init__(self):
        self.values: Dict[str, str] = {}
        self.sets: Dict[str, Set[str]] = {}
        self.expiry: Dict[str, datetime] = {}
        self.lock = asyncio.Lock()

        logger.info("InMemoryKeyValueStore initialized")

    def _expire_if_due(self, key: str) -> None:
        """Drop a key whose TTL has passed. Caller holds the lock."""
        deadline = self.expiry.get(key)
        if deadline and datetime.utcnow() >= deadline:
            self.values.pop(key, None)
            self.sets.pop(key, None)
            del self.expiry[key]
            logger.debug(f"Key {key} expired and removed")

    def _exists(self, key: str) -> bool:
        self._expire_if_due(key)
        return key in self.values or key in self.sets

    def _remove(self, key: str) -> bool:
        removed = False
        if key in self.values:
            del self.values[key]
            removed = True
        if key in self.sets:
            del self.sets[key]
            removed = True
        self.expiry.pop(key, None)
        return removed

    def _write(self, key: str, value: str, ttl: Optional[int]) -> None:
        self.sets.pop(key, None)
        self.values[key] = value
        if ttl:
            self.expiry[key] = datetime.utcnow() + timedelta(seconds=ttl)
        else:
            self.expiry.pop(key, None)

    async def get(self, key: str) -> Optional[str]:
        async with self.lock:
            self._expire_if_due(key)
            return self.values.get(key)

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        async with self.lock:
            self._write(key, value, ttl)

    async def set_if_absent(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        async with self.lock:
            if self._exists(key):
                return False
            self._write(key, value, ttl)
            return True

    async def delete(self, *keys: str) -> int:
        async with self.lock:
            removed = 0
            for key in keys:
                self._expire_if_due(key)
                if self._remove(key):
                    removed += 1
            return removed

    async def keys(self, pattern: str) -> List[str]:
        async with self.lock:
            candidates = list(self.values.keys()) + list(self.sets.keys())
            matched = []
            for key in candidates:
                if fnmatch.fnmatchcase(key, pattern) and self._exists(key):
                    matched.append(key)
            return matched

    async def sadd(self, key: str, *members: str) -> int:
        async with self.lock:
            self._expire_if_due(key)
            self.values.pop(key, None)
            current = self.sets.setdefault(key, set())
            before = len(current)
            current.update(members)
            return len(current) - before

    async def srem(self, key: str, *members: str) -> int:
        async with self.lock:
            self._expire_if_due(key)
            current = self.sets.get(key)
            if not current:
                return 0
            before = len(current)
            current.difference_update(members)
            if not current:
                # Redis drops empty sets
                del self.sets[key]
            return before - len(current)

    async def smembers(self, key: str) -> Set[str]:
        async with self.lock:
            self._expire_if_due(key)
            return set(self.sets.get(key, set()))

    async def write_batch(
        self,
        values: Dict[str, str],
        delete_keys: Iterable[str] = ()
    ) -> None:
        async with self.lock:
            for key in delete_keys:
                self._remove(key)
            for key, value in values.items():
                self._write(key, value, None)

    async def ping(self) -> bool:
        return True

    async def get_stats(self) -> Dict[str, Any]:
        async with self.lock:
            return {
                "store_type": "in_memory",
                "string_keys": len(self.values),
                "set_keys": len(self.sets),
                "keys_with_ttl": len(self.expiry),
            }


__all__ = ['InMemoryKeyValueStore']
