"""
Snapshot caching in an external key/value store.

The cache only accelerates startup; ZooKeeper stays the source of truth.
"""

from zkstate.cache.bridge import CacheBridge
from zkstate.cache.redis_store import RedisCacheConfig, RedisCacheStore
from zkstate.cache.store import CacheStore, InMemoryCacheStore

__all__ = [
    "CacheBridge",
    "CacheStore",
    "InMemoryCacheStore",
    "RedisCacheConfig",
    "RedisCacheStore",
]
