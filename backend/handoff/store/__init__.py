"""
Key-value store package.
Shared state for sessions, contacts, roles and assignments.
"""
from .kv_store import KeyValueStore
from .in_memory_kv_store import InMemoryKeyValueStore
from .redis_kv_store import RedisKeyValueStore


def create_kv_store(
    store_type: str = "in_memory",
    **kwargs
) -> KeyValueStore:
    """
    Factory function to create a key-value store.

    Args:
        store_type: Type of store ('in_memory' or 'redis')
        **kwargs: Store-specific configuration

    Returns:
        KeyValueStore instance

    Examples:
        store = create_kv_store('in_memory')

        store = create_kv_store(
            'redis',
            redis_url='redis://localhost:6379/0',
            key_prefix='handoff:'
        )
    """
    store_type = getattr(store_type, "value", store_type)

    if store_type == "in_memory":
        return InMemoryKeyValueStore()

    elif store_type == "redis":
        return RedisKeyValueStore(**kwargs)

    else:
        raise ValueError(f"Unknown store type: {store_type}")


__all__ = [
    'KeyValueStore',
    'InMemoryKeyValueStore',
    'RedisKeyValueStore',
    'create_kv_store',
]
