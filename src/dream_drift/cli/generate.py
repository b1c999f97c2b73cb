"""Run one generation cycle directly against the local store (cron-friendly)."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from dream_drift.adapters.observability import configure_runtime_logging
from dream_drift.adapters.openrouter_client import OpenRouterParagraphGenerator
from dream_drift.adapters.sqlite_anomaly_store import SQLiteAnomalyStore
from dream_drift.adapters.sqlite_story_store import SQLiteStoryStore
from dream_drift.application.anomaly_reporting import CycleAnomalyRecorder
from dream_drift.application.generation_cycle import CycleResult, GenerationCycle
from dream_drift.domain.errors import DreamDriftError
from dream_drift.domain.ports import ParagraphGenerator
from dream_drift.settings import RuntimeSettings, load_settings

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate the next story paragraph once.")
    parser.add_argument("--db-path", default="", help="SQLite path for story persistence.")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Skip the elapsed-interval gate (the cycle lease still applies).",
    )
    return parser


def run_once(
    settings: RuntimeSettings,
    *,
    generator: ParagraphGenerator | None = None,
    force: bool = False,
) -> CycleResult:
    """Build the cycle from settings, execute it, and record its anomalies."""
    anomalies = CycleAnomalyRecorder(SQLiteAnomalyStore(db_path=settings.db_path))
    cycle = GenerationCycle(
        repository=SQLiteStoryStore(db_path=settings.db_path),
        generator=generator or OpenRouterParagraphGenerator.from_settings(settings),
        max_attempts=settings.max_attempts,
        min_interval_minutes=0.0 if force else settings.min_interval_minutes,
        max_interval_minutes=0.0 if force else settings.max_interval_minutes,
        lease_ttl_seconds=settings.cycle_lease_seconds or None,
        enforce_continuity=settings.enforce_continuity,
    )
    try:
        result = cycle.run()
    except DreamDriftError as exc:
        anomalies.record_failure(exc)
        raise
    anomalies.record_result(result)
    return result


def main(argv: list[str] | None = None) -> int:
    configure_runtime_logging()
    parsed = build_arg_parser().parse_args(argv)
    db_path = str(parsed.db_path).strip()
    settings = load_settings(Path(db_path) if db_path else None)
    try:
        result = run_once(settings, force=bool(parsed.force))
    except DreamDriftError as exc:
        logger.error("cycle.failed error=%s", exc)
        print(f"error: {exc}")
        return 1
    if result.paragraph is None:
        print(f"skipped: {result.skip_reason}")
        return 0
    print(
        f"paragraph {result.paragraph.sequence} committed "
        f"(drift {result.paragraph.drift_level:.2f})"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
