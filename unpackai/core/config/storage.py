"""
Job store configuration.

Selects the store backend (Redis or in-process memory) and holds the
Redis connection settings.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class RedisConfig:
    """Redis connection configuration."""

    url: str = ""  # Takes precedence over host/port when set
    host: str = "localhost"
    port: int = 6379
    password: Optional[str] = None
    db: int = 0
    socket_timeout_seconds: float = 10.0


@dataclass
class StoreConfig:
    """Job store backend configuration."""

    backend: str = "redis"  # redis, memory
    key_prefix: str = "job:"
    queue_key: str = "job_queue"
    redis: RedisConfig = field(default_factory=RedisConfig)
