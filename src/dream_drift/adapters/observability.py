"""Runtime logging: console plus a size-capped rotating file."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path

from dream_drift.settings import env_int, env_str

DEFAULT_LOG_PATH = Path("work/logs/dream_drift.log")
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# Loggers that are noisy at INFO under a polling scheduler.
_QUIET_LOGGERS = ("uvicorn.access", "httpx")

_CONFIGURED = False


@dataclass(frozen=True)
class LoggingSettings:
    level: int = logging.INFO
    quiet_level: int = logging.WARNING
    log_path: Path = DEFAULT_LOG_PATH
    max_bytes: int = 2 * 1024 * 1024
    backup_count: int = 5

    @classmethod
    def from_env(cls) -> LoggingSettings:
        return cls(
            level=_level(env_str("DREAM_DRIFT_LOG_LEVEL"), logging.INFO),
            quiet_level=_level(env_str("DREAM_DRIFT_ACCESS_LOG_LEVEL"), logging.WARNING),
            log_path=Path(env_str("DREAM_DRIFT_LOG_PATH") or DEFAULT_LOG_PATH),
            max_bytes=env_int(
                "DREAM_DRIFT_LOG_MAX_BYTES",
                2 * 1024 * 1024,
                minimum=64 * 1024,
                maximum=50 * 1024 * 1024,
            ),
            backup_count=env_int("DREAM_DRIFT_LOG_BACKUP_COUNT", 5, minimum=1, maximum=60),
        )


def _level(name: str, default: int) -> int:
    value = logging.getLevelName(name.upper()) if name else default
    return value if isinstance(value, int) else default


def build_handlers(settings: LoggingSettings) -> list[logging.Handler]:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    settings.log_path.parent.mkdir(parents=True, exist_ok=True)
    handlers: list[logging.Handler] = [
        logging.StreamHandler(),
        RotatingFileHandler(
            filename=settings.log_path,
            maxBytes=settings.max_bytes,
            backupCount=settings.backup_count,
            encoding="utf-8",
        ),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure_runtime_logging(settings: LoggingSettings | None = None) -> None:
    """Install root handlers once per process; later calls are no-ops."""
    global _CONFIGURED
    if _CONFIGURED:
        return
    effective = settings if settings is not None else LoggingSettings.from_env()

    root = logging.getLogger()
    root.setLevel(effective.level)
    root.handlers.clear()
    for handler in build_handlers(effective):
        root.addHandler(handler)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(effective.quiet_level)

    _CONFIGURED = True
