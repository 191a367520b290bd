"""Redis configuration for the remediation tracker store.

This module provides:
1. RedisConfig - Configuration dataclass for Redis connections
2. get_async_redis_client() - Factory for the asynchronous Redis client

The tracker keeps execution records (string keys with TTL) and its
time-ordered indices (sorted sets) in a single logical database.
"""

import os
from dataclasses import dataclass
from typing import Optional

from redis.asyncio import Redis as AsyncRedis


@dataclass
class RedisConfig:
    """Redis connection configuration.

    Attributes:
        host: Redis server hostname (default: localhost)
        port: Redis server port (default: 6379)
        password: Redis authentication password (default: None)
        db: Database number holding execution records (default: 2)
    """

    host: str = ""
    port: int = 0
    password: Optional[str] = None
    db: int = -1

    def __post_init__(self) -> None:
        """Initialize values from environment if not provided."""
        if not self.host:
            self.host = os.getenv("REDIS_HOST", "localhost")
        if self.port == 0:
            self.port = int(os.getenv("REDIS_PORT", "6379"))
        if self.password is None:
            self.password = os.getenv("REDIS_PASSWORD")
        if self.db < 0:
            self.db = int(os.getenv("REDIS_DB", "2"))

    @property
    def url(self) -> str:
        """Generate the Redis connection URL.

        Returns:
            Redis URL in the form redis://[password@]host:port/db

        Example:
            redis://localhost:6379/2
            redis://:secret@redis.example.com:6379/2
        """
        auth: str = f":{self.password}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"


def get_async_redis_client(config: RedisConfig | None = None) -> AsyncRedis:
    """Get an asynchronous Redis client.

    Responses are decoded to strings so execution records and index members
    come back as ``str``.

    Args:
        config: Connection settings; read from the environment when omitted

    Returns:
        Configured async Redis client instance

    Example:
        >>> client = get_async_redis_client()
        >>> await client.set("key", "value")
        >>> await client.aclose()
    """
    config = config or RedisConfig()
    return AsyncRedis(
        host=config.host,
        port=config.port,
        password=config.password,
        db=config.db,
        decode_responses=True,
    )
