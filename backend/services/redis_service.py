"""
Redis service for sync throttling and short-lived caching.

Redis is optional: when it cannot be reached the client is left unset and
every operation degrades to a no-op.
"""

import json
import logging
from typing import Optional, Any
import redis
from redis.connection import ConnectionPool

from backend.config import settings

logger = logging.getLogger(__name__)


class RedisService:
    """Redis service with connection pooling."""

    def __init__(self, redis_host: str = None, redis_port: int = None, redis_db: int = None,
                 redis_password: str = None, redis_ssl: bool = None, decode_responses: bool = None):
        """Initialize Redis service with configuration."""
        self.host = redis_host or settings.REDIS_HOST
        self.port = redis_port or settings.REDIS_PORT
        self.db = redis_db if redis_db is not None else settings.REDIS_DB
        self.password = redis_password or settings.REDIS_PASSWORD
        self.ssl = redis_ssl if redis_ssl is not None else settings.REDIS_SSL
        self.decode_responses = decode_responses if decode_responses is not None else settings.REDIS_DECODE_RESPONSES

        self.pool = None
        self.client = None
        self._initialize_client()

    def _initialize_client(self):
        """Initialize Redis client with connection pooling."""
        try:
            pool_params = {
                'host': self.host,
                'port': self.port,
                'db': self.db,
                'decode_responses': self.decode_responses,
                'socket_connect_timeout': 5,
                'socket_timeout': 5,
                'retry_on_timeout': True
            }

            if self.password:
                pool_params['password'] = self.password

            # Remote Redis only
            if self.ssl:
                pool_params['ssl'] = True

            self.pool = ConnectionPool(**pool_params)
            self.client = redis.Redis(connection_pool=self.pool)

            self.client.ping()
            logger.info(f"Redis connection established: {self.host}:{self.port}/{self.db}")

        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.warning(f"Redis unavailable, throttling and caching disabled: {e}")
            self.client = None
        except Exception as e:
            logger.error(f"Redis initialization error: {e}")
            self.client = None

    def is_connected(self) -> bool:
        """Check if Redis is connected and available."""
        if not self.client:
            return False
        try:
            self.client.ping()
            return True
        except (redis.ConnectionError, redis.TimeoutError):
            return False

    def acquire_throttle(self, key: str, ttl: int) -> bool:
        """
        Claim a throttle window.

        Args:
            key: Throttle key
            ttl: Window length in seconds

        Returns:
            True if the window was free (or Redis is unavailable), False if throttled
        """
        if not self.client:
            return True

        try:
            return bool(self.client.set(key, "1", nx=True, ex=ttl))
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.error(f"Redis throttle error for key {key}: {e}")
            return True

    def get_ttl(self, key: str) -> int:
        """
        Get remaining TTL for a key.

        Args:
            key: Redis key

        Returns:
            TTL in seconds, -1 if no expiry, -2 if key doesn't exist or on error
        """
        if not self.client:
            return -2

        try:
            return self.client.ttl(key)
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.error(f"Redis TTL error for key {key}: {e}")
            return -2

    def set_json(self, key: str, data: Any, ttl: Optional[int] = None) -> bool:
        """
        Store JSON-serializable data.

        Args:
            key: Redis key
            data: Data to serialize
            ttl: Time to live in seconds

        Returns:
            True if successful, False otherwise
        """
        if not self.client:
            return False

        try:
            payload = json.dumps(data)
            if ttl:
                return bool(self.client.setex(key, ttl, payload))
            return bool(self.client.set(key, payload))
        except (TypeError, ValueError) as e:
            logger.error(f"JSON serialization error for key {key}: {e}")
            return False
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.error(f"Redis set error for key {key}: {e}")
            return False

    def get_json(self, key: str) -> Optional[Any]:
        """Get and deserialize JSON data, or None if missing or unreadable."""
        if not self.client:
            return None

        try:
            value = self.client.get(key)
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.error(f"Redis get error for key {key}: {e}")
            return None
        if value is None:
            return None

        try:
            return json.loads(value)
        except (TypeError, ValueError) as e:
            logger.error(f"JSON deserialization error for key {key}: {e}")
            return None

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def close(self):
        """Close Redis connection and cleanup resources."""
        if self.client:
            try:
                self.client.close()
                logger.info("Redis connection closed")
            except Exception as e:
                logger.error(f"Error closing Redis connection: {e}")

        if self.pool:
            try:
                self.pool.disconnect()
            except Exception as e:
                logger.error(f"Error disconnecting Redis pool: {e}")
