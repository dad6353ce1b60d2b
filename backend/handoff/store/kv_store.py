"""
Abstract key-value store interface.
Every registry talks to shared state through this contract.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set


class KeyValueStore(ABC):
    """
    Abstract base class for the shared key-value store.

    Single-key operations are atomic. ``write_batch`` is the only
    multi-key operation and implementations must apply it atomically.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Get a string value.

        Returns:
            The value, or None if the key is absent
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """
        Set a string value.

        Args:
            key: Key
            value: Value
            ttl: Time-to-live in seconds (optional)
        """
        pass

    @abstractmethod
    async def set_if_absent(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """
        Set a value only if the key does not exist.

        Returns:
            True if this call wrote the value
        """
        pass

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """
        Delete keys. Missing keys are ignored.

        Returns:
            Number of keys removed
        """
        pass

    @abstractmethod
    async def keys(self, pattern: str) -> List[str]:
        """
        List keys matching a glob pattern (``*`` wildcard).
        """
        pass

    @abstractmethod
    async def sadd(self, key: str, *members: str) -> int:
        """Add members to a set. Returns the number newly added."""
        pass

    @abstractmethod
    async def srem(self, key: str, *members: str) -> int:
        """Remove members from a set. Returns the number removed."""
        pass

    @abstractmethod
    async def smembers(self, key: str) -> Set[str]:
        """Members of a set (empty set if absent)."""
        pass

    @abstractmethod
    async def write_batch(
        self,
        values: Dict[str, str],
        delete_keys: Iterable[str] = ()
    ) -> None:
        """
        Atomically write several string values and delete several keys.

        Deletes are applied before writes, so a key present in both ends
        up written.
        """
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """Check the backend is reachable."""
        pass

    @abstractmethod
    async def get_stats(self) -> Dict[str, Any]:
        """Backend statistics for health reporting."""
        pass

    async def close(self) -> None:
        """Release connections. No-op by default."""
        return None

    async def health_check(self) -> Dict[str, Any]:
        """
        Round-trip a test key through set, get and delete.

        Returns:
            Dictionary with health status
        """
        try:
            check_key = f"health_check:{datetime.utcnow().timestamp()}"

            await self.set(check_key, "ok", ttl=10)
            get_success = await self.get(check_key) == "ok"
            delete_success = await self.delete(check_key) == 1

            stats = await self.get_stats()

            return {
                "healthy": get_success and delete_success,
                "operations": {
                    "get": get_success,
                    "delete": delete_success
                },
                "stats": stats
            }

        except Exception as e:
            return {
                "healthy": False,
                "error": str(e)
            }


__all__ = ['KeyValueStore']
