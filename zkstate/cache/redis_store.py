"""Redis-backed cache store."""

from dataclasses import dataclass
from typing import Optional

from redis import Redis
from redis.exceptions import RedisError

from zkstate.cache.store import validate_key
from zkstate.exceptions import CacheBackendError
from zkstate.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RedisCacheConfig:
    """
    Configuration for :class:`RedisCacheStore`.

    Attributes:
        redis_url: Redis connection URL used when no client is supplied
        namespace: Prefix for every key written by this store
    """
    redis_url: str = "redis://127.0.0.1:6379/0"
    namespace: str = "zkstate"


class RedisCacheStore:
    """
    Cache store keeping values in Redis strings with ``EX`` expiry.

    All redis errors are raised as :class:`CacheBackendError`.
    """

    def __init__(
        self,
        config: Optional[RedisCacheConfig] = None,
        redis_client: Optional[Redis] = None,
    ):
        """
        Initialize store.

        Args:
            config: Store configuration
            redis_client: Preconfigured client (skips from_url)
        """
        self.config = config or RedisCacheConfig()
        self._redis = redis_client or Redis.from_url(self.config.redis_url)

        logger.info(
            "Initialized redis cache store",
            namespace=self.config.namespace,
        )

    def _key(self, key: str) -> str:
        validate_key(key)
        return f"{self.config.namespace}:{key}"

    def get(self, key: str) -> Optional[str]:
        try:
            value = self._redis.get(self._key(key))
        except RedisError as e:
            raise CacheBackendError(f"Redis GET failed for '{key}': {e}") from e

        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        try:
            self._redis.set(self._key(key), value, ex=ttl)
        except RedisError as e:
            raise CacheBackendError(f"Redis SET failed for '{key}': {e}") from e
