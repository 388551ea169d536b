"""
Redis Cache Client
Redis client with connection pooling for persisted embedding corpora.
"""

import logging
import pickle
from typing import Any, Optional

import redis
from redis.connection import ConnectionPool

from ...config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class RedisCacheError(Exception):
    """Exception raised for Redis cache errors."""

    pass


class RedisCache:
    """
    Redis cache client with connection pooling.

    Values are pickled. Read and write failures are logged and reported as
    misses (get -> None, set -> False) so callers can fall back to
    recomputation.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[redis.Redis] = None,
    ):
        """
        Initialize Redis cache client.

        Args:
            settings: Application settings (host, port, db, password)
            client: Pre-built Redis client (skips pool creation)
        """
        self.settings = settings or get_settings()
        self.client = client
        self.pool: Optional[ConnectionPool] = None

        if client is None:
            self.pool = ConnectionPool(
                host=self.settings.redis_host,
                port=self.settings.redis_port,
                db=self.settings.redis_db,
                password=self.settings.redis_password or None,
                decode_responses=False,  # Payloads are pickled bytes
                max_connections=20,
                socket_timeout=5,
                socket_connect_timeout=5,
            )

            logger.info(
                f"Redis cache initialized: {self.settings.redis_host}:"
                f"{self.settings.redis_port} (db={self.settings.redis_db})"
            )

    def _get_client(self) -> redis.Redis:
        """
        Get Redis client (lazy initialization).

        Raises:
            RedisCacheError: If connection fails
        """
        if self.client is None:
            try:
                self.client = redis.Redis(connection_pool=self.pool)
                self.client.ping()
                logger.info("Redis connection established")
            except redis.ConnectionError as e:
                self.client = None
                raise RedisCacheError(f"Failed to connect to Redis: {e}") from e

        return self.client

    def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found or unreadable
        """
        try:
            data = self._get_client().get(key)
        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Redis GET error for key '{key}': {e}")
            return None

        if data is None:
            return None

        try:
            return pickle.loads(data)
        except (pickle.UnpicklingError, EOFError, AttributeError, ValueError) as e:
            logger.error(f"Error deserializing cached data for key '{key}': {e}")
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Set value in cache.

        Args:
            key: Cache key
            value: Value to cache (will be pickled)
            ttl: Time-to-live in seconds (None = no expiration)

        Returns:
            True if successful, False otherwise
        """
        data = pickle.dumps(value)

        try:
            client = self._get_client()
            if ttl is not None:
                client.setex(key, ttl, data)
            else:
                client.set(key, data)
            return True

        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Redis SET error for key '{key}': {e}")
            return False

    def delete(self, key: str) -> bool:
        """
        Delete key from cache.

        Returns:
            True if key was deleted, False otherwise
        """
        try:
            return self._get_client().delete(key) > 0

        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Redis DELETE error for key '{key}': {e}")
            return False

    def ping(self) -> bool:
        """Test Redis connection."""
        try:
            return bool(self._get_client().ping())

        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Redis PING error: {e}")
            return False

