"""
Reading and overriding UnpackAI configuration.

A value is taken from the first source that sets it: an environment
variable, then the YAML file, then the dataclass default. YAML strings may
reference the environment as ``${NAME}`` or ``${NAME:fallback}``.

Environment variables
---------------------
    REDIS_URL, REDIS_HOST, REDIS_PORT, REDIS_PASSWORD, REDIS_DB
    UNPACKAI_STORE_BACKEND        redis | memory
    UNPACKAI_MAX_WORKERS          worker pool size
    UNPACKAI_JOB_TIMEOUT          per-job deadline in seconds
    N8N_WEBHOOK_URL, N8N_API_KEY  pipeline executor webhook
    UNPACKAI_API_HOST, UNPACKAI_API_PORT
    JWT_SECRET                    bearer token secret
    UNPACKAI_LOG_LEVEL
    UNPACKAI_CONFIG               path of the YAML file to load
"""

import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Tuple

import yaml

from unpackai.core.exceptions import ConfigValidationError
from unpackai.core.logging import get_logger

if TYPE_CHECKING:
    from unpackai.core.config import Config

logger = get_logger(__name__)

CONFIG_FILENAMES = ("config.yaml", "unpackai.yaml")
CONFIG_PATH_ENV = "UNPACKAI_CONFIG"

_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[^}:]+)(?::(?P<fallback>[^}]*))?\}")


def expand_env_vars(value: Any) -> Any:
    """Substitute ``${NAME[:fallback]}`` references in strings, recursing into dicts and lists.

    An unset variable with no fallback expands to the empty string.
    """
    if isinstance(value, dict):
        return {key: expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    if not isinstance(value, str):
        return value
    return _ENV_REFERENCE.sub(
        lambda m: os.environ.get(m.group("name"), m.group("fallback") or ""), value
    )


def _number(cast: Callable[[str], Any], kind: str) -> Callable[[str, str], Any]:
    def parse(name: str, raw: str) -> Any:
        try:
            return cast(raw)
        except ValueError:
            raise ConfigValidationError(name, raw, f"must be {kind}")

    return parse


def _text(name: str, raw: str) -> str:
    return raw


_as_int = _number(int, "an integer")
_as_float = _number(float, "a number")

# (variable, dotted attribute on Config, parser)
ENV_OVERRIDES: List[Tuple[str, str, Callable[[str, str], Any]]] = [
    ("UNPACKAI_STORE_BACKEND", "store.backend", lambda n, v: v.strip().lower()),
    ("REDIS_URL", "store.redis.url", _text),
    ("REDIS_HOST", "store.redis.host", _text),
    ("REDIS_PORT", "store.redis.port", _as_int),
    ("REDIS_PASSWORD", "store.redis.password", _text),
    ("REDIS_DB", "store.redis.db", _as_int),
    ("UNPACKAI_MAX_WORKERS", "queue.max_workers", _as_int),
    ("UNPACKAI_JOB_TIMEOUT", "queue.job_timeout_seconds", _as_float),
    ("N8N_WEBHOOK_URL", "executor.webhook_url", _text),
    ("N8N_API_KEY", "executor.api_key", _text),
    ("UNPACKAI_API_HOST", "api.host", _text),
    ("UNPACKAI_API_PORT", "api.port", _as_int),
    ("JWT_SECRET", "auth.jwt_secret", _text),
    ("UNPACKAI_LOG_LEVEL", "logging.level", lambda n, v: v.upper()),
]


def _apply_env_overrides(config: "Config") -> "Config":
    """Overwrite config fields from set, non-blank variables, then re-validate."""
    for name, dotted, parse in ENV_OVERRIDES:
        raw = os.environ.get(name, "")
        if not raw.strip():
            continue
        *parents, attr = dotted.split(".")
        target: Any = config
        for part in parents:
            target = getattr(target, part)
        setattr(target, attr, parse(name, raw))

    config.validate()
    return config


def _resolve_path(config_path: Optional[Path], base_path: Path) -> Optional[Path]:
    if config_path is not None:
        return config_path
    from_env = os.environ.get(CONFIG_PATH_ENV)
    if from_env:
        return Path(from_env)
    for filename in CONFIG_FILENAMES:
        candidate = base_path / filename
        if candidate.exists():
            return candidate
    return None


def load_config(
    config_path: Optional[Path] = None, base_path: Optional[Path] = None
) -> "Config":
    """
    Build the effective Config.

    Args:
        config_path: YAML file to read. When omitted, $UNPACKAI_CONFIG is
            used, then config.yaml or unpackai.yaml under base_path.
        base_path: Directory relative paths resolve against (cwd by default).

    Raises:
        ConfigValidationError: A file or environment value is out of range.

    An unreadable or malformed file is logged and replaced by defaults.
    """
    from unpackai.core.config import Config

    base_path = base_path or Path.cwd()
    path = _resolve_path(config_path, base_path)

    data: dict = {}
    if path is not None and path.exists():
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not load config, using defaults", path=path, error=e)
            data = {}

    if data:
        config = Config.from_dict(data, base_path)
    else:
        config = Config()
        config._base_path = base_path
    return _apply_env_overrides(config)

