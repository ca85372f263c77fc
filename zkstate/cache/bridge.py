"""
Mirror of the cluster snapshot in an external cache.

The snapshot is written as one JSON document under one key, carrying
every logical field under its own name. Restoring is all-or-nothing: a
document missing any field counts as a miss, so a reader never starts
from a hybrid of cached and live data.
"""

import json
from typing import Optional

from zkstate.cache.store import CacheStore
from zkstate.exceptions import CacheBackendError
from zkstate.state.models import SNAPSHOT_FIELDS, ClusterSnapshot
from zkstate.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CACHE_KEY = "zkstate.snapshot"


class CacheBridge:
    """
    Persists and restores :class:`ClusterSnapshot` values.

    The cache is an accelerator, never the source of truth: backend
    errors are logged and reported as a False return, never raised.
    """

    def __init__(
        self,
        store: CacheStore,
        key: str = DEFAULT_CACHE_KEY,
        expiration: Optional[int] = None,
    ):
        """
        Initialize bridge.

        Args:
            store: External cache store
            key: Key the snapshot is stored under
            expiration: Default expiry in seconds for persist()
        """
        self.store = store
        self.key = key
        self.expiration = expiration
        self.restored: Optional[ClusterSnapshot] = None

    def try_restore(self) -> bool:
        """
        Restore a snapshot from the cache.

        On success the snapshot is available as :attr:`restored`.

        Returns:
            True only if every logical field was present
        """
        self.restored = None

        try:
            raw = self.store.get(self.key)
        except CacheBackendError as e:
            logger.warning("Cache restore failed", key=self.key, error=str(e))
            return False

        if raw is None:
            logger.info("Cache miss", key=self.key)
            return False

        try:
            payload = json.loads(raw)
        except ValueError as e:
            logger.warning("Cached snapshot is not valid JSON", key=self.key, error=str(e))
            return False

        if not isinstance(payload, dict):
            logger.warning("Cached snapshot is not an object", key=self.key)
            return False

        missing = [name for name in SNAPSHOT_FIELDS if name not in payload]
        if missing:
            logger.info("Partial cache hit treated as miss", key=self.key, missing=missing)
            return False

        try:
            self.restored = ClusterSnapshot.from_dict(payload)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Cached snapshot is malformed", key=self.key, error=str(e))
            return False

        logger.info(
            "Restored cluster snapshot from cache",
            key=self.key,
            collections=len(self.restored.collections),
        )
        return True

    def persist(self, snapshot: ClusterSnapshot, ttl: Optional[int] = None) -> bool:
        """
        Write a snapshot to the cache.

        Args:
            snapshot: Snapshot to store
            ttl: Expiry in seconds (default: the bridge's expiration)

        Returns:
            True if the write succeeded
        """
        ttl = ttl if ttl is not None else self.expiration

        try:
            payload = json.dumps(snapshot.to_dict(), separators=(",", ":"), sort_keys=True)
        except (TypeError, ValueError) as e:
            logger.error("Cluster snapshot is not serializable", error=str(e))
            return False

        try:
            self.store.set(self.key, payload, ttl)
        except CacheBackendError as e:
            logger.warning("Cache persist failed", key=self.key, error=str(e))
            return False

        logger.debug("Persisted cluster snapshot", key=self.key, ttl=ttl, size=len(payload))
        return True
