"""
Logging for UnpackAI.

Every module gets its logger from get_logger(). Keyword arguments passed to
a log call are rendered after the message as ``key=value`` pairs:

    logger = get_logger(__name__)
    logger.info("Job submitted", job_id="job_1", owner="u1")
    # Job submitted | job_id=job_1 | owner=u1

Handlers are installed per logger from a LogConfig. configure_logging()
swaps the process-wide default and re-applies it to loggers that already
exist, so module-level loggers created at import time follow the CLI's
--verbose flag and the config file's level.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.logging import RichHandler

FIELD_SEPARATOR = " | "


@dataclass
class LogConfig:
    """Handler settings applied to a StructuredLogger."""

    level: str = "INFO"
    format: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    file_path: Optional[Path] = None
    console: bool = True

    @property
    def levelno(self) -> int:
        return getattr(logging, self.level.upper(), logging.INFO)


_default_config = LogConfig()
_registry: Dict[str, "StructuredLogger"] = {}


def _build_handlers(config: LogConfig) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if config.console:
        handlers.append(
            RichHandler(show_path=False, markup=False, rich_tracebacks=True)
        )
    if config.file_path:
        config.file_path.parent.mkdir(parents=True, exist_ok=True)
        to_file = logging.FileHandler(config.file_path, encoding="utf-8")
        to_file.setFormatter(
            logging.Formatter(config.format, datefmt=config.date_format)
        )
        handlers.append(to_file)
    for handler in handlers:
        handler.setLevel(config.levelno)
    return handlers


def render_fields(message: str, fields: Dict[str, Any]) -> str:
    if not fields:
        return message
    pairs = FIELD_SEPARATOR.join(f"{key}={value}" for key, value in fields.items())
    return f"{message}{FIELD_SEPARATOR}{pairs}"


class StructuredLogger:
    """
    Wrapper around a stdlib logger that renders keyword fields.

    Fields given to bind() are prepended to the per-call fields on every
    later record, so a worker can tag all of its lines once.
    """

    def __init__(self, name: str, config: Optional[LogConfig] = None) -> None:
        self.logger = logging.getLogger(name)
        self._bound: Dict[str, Any] = {}
        self.reconfigure(config or _default_config)

    def reconfigure(self, config: LogConfig) -> None:
        self.config = config
        self.logger.setLevel(config.levelno)
        for old in list(self.logger.handlers):
            self.logger.removeHandler(old)
            old.close()
        for handler in _build_handlers(config):
            self.logger.addHandler(handler)

    def bind(self, **fields: Any) -> "StructuredLogger":
        self._bound.update(fields)
        return self

    def _emit(
        self, level: int, message: str, fields: Dict[str, Any], exc_info: bool = False
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return
        text = render_fields(message, {**self._bound, **fields})
        self.logger.log(level, text, exc_info=exc_info)

    def debug(self, message: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, message, fields)

    def info(self, message: str, **fields: Any) -> None:
        self._emit(logging.INFO, message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._emit(logging.WARNING, message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._emit(logging.ERROR, message, fields)

    def exception(self, message: str, **fields: Any) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._emit(logging.ERROR, message, fields, exc_info=True)


def get_logger(name: str, config: Optional[LogConfig] = None) -> StructuredLogger:
    """Return the cached logger for name, creating it on first use."""
    logger = _registry.get(name)
    if logger is None:
        logger = _registry[name] = StructuredLogger(name, config)
    return logger


def configure_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    console: bool = True,
) -> None:
    """
    Replace the default LogConfig and apply it to every registered logger.

    Args:
        level: Level name such as DEBUG or WARNING.
        log_file: Also write records to this file when set.
        console: Attach a rich console handler.
    """
    global _default_config
    _default_config = LogConfig(level=level, file_path=log_file, console=console)
    logging.getLogger().setLevel(_default_config.levelno)
    for logger in _registry.values():
        logger.reconfigure(_default_config)


class JobLogger:
    """Logs one job's claim and terminal outcome with the time between them."""

    def __init__(self, job_id: str, worker_id: str) -> None:
        self.job_id = job_id
        self.worker_id = worker_id
        self.logger = get_logger("unpackai.jobs")
        self._claimed_at: Optional[float] = None

    def claimed(self) -> None:
        self._claimed_at = time.monotonic()
        self.logger.info("Job claimed", job_id=self.job_id, worker=self.worker_id)

    def elapsed(self) -> float:
        if self._claimed_at is None:
            return 0.0
        return time.monotonic() - self._claimed_at

    def finish(self, success: bool, error: Optional[str] = None) -> None:
        fields: Dict[str, Any] = {
            "job_id": self.job_id,
            "worker": self.worker_id,
            "duration_sec": f"{self.elapsed():.2f}",
        }
        if success:
            self.logger.info("Job completed", **fields)
        else:
            self.logger.warning("Job failed", error=error, **fields)
