"""
Configuration Management for UnpackAI.

Dataclass configuration tree loaded from YAML with environment overrides.

    from unpackai.core.config import Config
    from unpackai.core.config_loaders import load_config

    config = load_config()
    workers = config.queue.max_workers
"""

from unpackai.core.config.config import Config
from unpackai.core.config.features import (
    APIConfig,
    AuthConfig,
    ExecutorConfig,
    LoggingConfig,
)
from unpackai.core.config.queue import QueueConfig
from unpackai.core.config.storage import RedisConfig, StoreConfig

__all__ = [
    "Config",
    "StoreConfig",
    "RedisConfig",
    "QueueConfig",
    "ExecutorConfig",
    "APIConfig",
    "AuthConfig",
    "LoggingConfig",
]
