"""
The Config dataclass: one instance per process.

Config groups six sections, each a dataclass of its own:

    store      backend choice ("redis" or "memory"), Redis connection, key names
    queue      pool size, per-job deadline, retention, watchdog
    executor   workflow webhook URL and API key
    api        bind address, overload threshold, backpressure limit
    auth       JWT secret and algorithm
    logging    level and optional log file

load_config() builds it from YAML plus environment overrides; the API,
the worker command and the CLI hand it to create_runtime() and friends.
String values may reference the environment, for example

    store:
      redis:
        password: ${REDIS_PASSWORD}
        host: ${REDIS_HOST:localhost}

and are converted back to int, float or bool to match the field.
"""

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

from unpackai.core.config.features import (
    APIConfig,
    AuthConfig,
    ExecutorConfig,
    LoggingConfig,
)
from unpackai.core.config.queue import QueueConfig
from unpackai.core.config.storage import RedisConfig, StoreConfig
from unpackai.core.exceptions import ConfigValidationError

VALID_STORE_BACKENDS = {"redis", "memory"}
_TRUE_VALUES = {"1", "true", "yes", "on"}


def _coerce(field_type: Any, value: Any) -> Any:
    """Convert strings produced by ${VAR} expansion to the field's type."""
    if not isinstance(value, str):
        return value
    try:
        if field_type is bool:
            return value.strip().lower() in _TRUE_VALUES
        if field_type is int:
            return int(value)
        if field_type is float:
            return float(value)
    except ValueError:
        raise ConfigValidationError("value", value, f"expected {field_type.__name__}")
    return value


@dataclass
class Config:
    """Main UnpackAI configuration."""

    store: StoreConfig = field(default_factory=StoreConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    executor: ExecutorConfig = field(default_factory=ExecutorConfig)
    api: APIConfig = field(default_factory=APIConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Directory relative paths (the log file) resolve against.
    _base_path: Path = field(default_factory=Path.cwd, repr=False)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check value ranges.

        Called on construction and again after environment overrides are
        applied, since overrides mutate the nested configs in place.
        """
        if self.store.backend not in VALID_STORE_BACKENDS:
            raise ConfigValidationError(
                "store.backend",
                self.store.backend,
                f"must be one of {sorted(VALID_STORE_BACKENDS)}",
            )
        if self.queue.max_workers < 1:
            raise ConfigValidationError(
                "queue.max_workers", self.queue.max_workers, "must be >= 1"
            )
        for name in (
            "pop_timeout_seconds",
            "job_timeout_seconds",
            "retention_hours",
            "cleanup_interval_seconds",
        ):
            value = getattr(self.queue, name)
            if value <= 0:
                raise ConfigValidationError(f"queue.{name}", value, "must be > 0")
        if self.queue.stale_after_seconds < 0:
            raise ConfigValidationError(
                "queue.stale_after_seconds",
                self.queue.stale_after_seconds,
                "must be >= 0",
            )
        if not (1 <= self.api.port <= 65535):
            raise ConfigValidationError("api.port", self.api.port, "must be 1-65535")

    @property
    def log_path(self) -> Optional[Path]:
        """Absolute path of the log file, if file logging is enabled."""
        if not self.logging.file:
            return None
        path = Path(self.logging.file)
        return path if path.is_absolute() else self._base_path / path

    def to_dict(self) -> Dict[str, Any]:
        """Plain nested dict of the public sections, suitable for YAML."""
        return {k: v for k, v in asdict(self).items() if not k.startswith("_")}

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], base_path: Optional[Path] = None
    ) -> "Config":
        """Build a Config from parsed YAML, ignoring unknown sections and keys."""
        from unpackai.core.config_loaders import expand_env_vars

        data = expand_env_vars(data or {})
        store_data = dict(data.get("store") or {})
        redis = _build(RedisConfig, store_data.pop("redis", None))
        sections = {
            name: _build(section_type, data.get(name))
            for name, section_type in (
                ("queue", QueueConfig),
                ("executor", ExecutorConfig),
                ("api", APIConfig),
                ("auth", AuthConfig),
                ("logging", LoggingConfig),
            )
        }
        config = cls(store=_build(StoreConfig, store_data, redis=redis), **sections)
        if base_path:
            config._base_path = base_path
        return config


def _build(section_type: Any, data: Optional[Dict[str, Any]], **extra: Any) -> Any:
    """Instantiate a section dataclass from the keys it declares."""
    types = {f.name: f.type for f in fields(section_type)}
    known = {k: _coerce(types[k], v) for k, v in (data or {}).items() if k in types}
    known.update(extra)
    return section_type(**known)
