"""Environment-driven runtime settings."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_DB_PATH = Path("work/local/dream_drift.db")
DEFAULT_OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_MODEL = "anthropic/claude-3.5-sonnet"
DEFAULT_SCHEDULER_HEADER = "x-cron-trigger"


@dataclass(frozen=True)
class RuntimeSettings:
    """Resolved configuration for the generation job and HTTP surface."""

    db_path: Path = DEFAULT_DB_PATH
    cron_secret: str | None = None
    scheduler_header: str = DEFAULT_SCHEDULER_HEADER
    openrouter_api_key: str | None = None
    openrouter_url: str = DEFAULT_OPENROUTER_URL
    model: str = DEFAULT_MODEL
    max_tokens: int = 400
    temperature: float = 0.8
    generation_timeout_seconds: float = 30.0
    max_attempts: int = 2
    min_interval_minutes: float = 5.0
    max_interval_minutes: float = 10.0
    cycle_lease_seconds: int = 120
    enforce_continuity: bool = False
    site_url: str = "http://127.0.0.1:8000"
    app_title: str = "Dream Drift"
    anomaly_retention_days: int = 30
    anomaly_max_rows: int = 10_000


def load_settings(db_path: Path | None = None) -> RuntimeSettings:
    """Build settings from `DREAM_DRIFT_*` environment variables."""
    min_interval = env_float("DREAM_DRIFT_MIN_INTERVAL_MINUTES", 5.0, minimum=0.0, maximum=1440.0)
    max_interval = env_float(
        "DREAM_DRIFT_MAX_INTERVAL_MINUTES", 10.0, minimum=0.0, maximum=1440.0
    )
    max_attempts = env_int("DREAM_DRIFT_MAX_ATTEMPTS", 2, minimum=1, maximum=10)
    timeout_seconds = env_float(
        "DREAM_DRIFT_GENERATION_TIMEOUT_SECONDS", 30.0, minimum=1.0, maximum=600.0
    )
    lease_seconds = env_int("DREAM_DRIFT_CYCLE_LEASE_SECONDS", 120, minimum=0, maximum=3600)
    if lease_seconds:
        # A live lease must outlast every attempt the cycle may make.
        lease_seconds = max(lease_seconds, math.ceil(max_attempts * timeout_seconds))
    return RuntimeSettings(
        db_path=_resolve_db_path(db_path),
        cron_secret=env_str("DREAM_DRIFT_CRON_SECRET") or env_str("CRON_SECRET") or None,
        scheduler_header=env_str("DREAM_DRIFT_SCHEDULER_HEADER").lower()
        or DEFAULT_SCHEDULER_HEADER,
        openrouter_api_key=env_str("DREAM_DRIFT_OPENROUTER_API_KEY")
        or env_str("OPENROUTER_API_KEY")
        or None,
        openrouter_url=env_str("DREAM_DRIFT_OPENROUTER_URL") or DEFAULT_OPENROUTER_URL,
        model=env_str("DREAM_DRIFT_MODEL") or DEFAULT_MODEL,
        max_tokens=env_int("DREAM_DRIFT_MAX_TOKENS", 400, minimum=16, maximum=8192),
        temperature=env_float("DREAM_DRIFT_TEMPERATURE", 0.8, minimum=0.0, maximum=2.0),
        generation_timeout_seconds=timeout_seconds,
        max_attempts=max_attempts,
        min_interval_minutes=min_interval,
        max_interval_minutes=max(min_interval, max_interval),
        cycle_lease_seconds=lease_seconds,
        enforce_continuity=env_bool("DREAM_DRIFT_ENFORCE_CONTINUITY", False),
        site_url=env_str("DREAM_DRIFT_SITE_URL") or "http://127.0.0.1:8000",
        anomaly_retention_days=env_int(
            "DREAM_DRIFT_ANOMALY_RETENTION_DAYS", 30, minimum=1, maximum=3650
        ),
        anomaly_max_rows=env_int(
            "DREAM_DRIFT_ANOMALY_MAX_ROWS", 10_000, minimum=100, maximum=2_000_000
        ),
    )


def cors_origins() -> list[str]:
    raw = env_str("DREAM_DRIFT_CORS_ORIGINS")
    if raw:
        return [origin.strip() for origin in raw.split(",") if origin.strip()]
    return ["http://127.0.0.1:5173", "http://localhost:5173"]


def _resolve_db_path(db_path: Path | None) -> Path:
    """Resolve DB path from explicit arg, env var, then default path."""
    if db_path is not None:
        return db_path
    env_value = env_str("DREAM_DRIFT_DB_PATH")
    if env_value:
        return Path(env_value)
    return DEFAULT_DB_PATH


def env_str(name: str) -> str:
    return os.environ.get(name, "").strip()


def env_int(name: str, default: int, *, minimum: int, maximum: int) -> int:
    raw = env_str(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, min(maximum, value))


def env_float(name: str, default: float, *, minimum: float, maximum: float) -> float:
    raw = env_str(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return max(minimum, min(maximum, value))


def env_bool(name: str, default: bool) -> bool:
    raw = env_str(name).lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}
