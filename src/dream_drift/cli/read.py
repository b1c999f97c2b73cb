"""Terminal reader that polls the story feed and renders it."""

from __future__ import annotations

import argparse
import logging
import math
import time
from collections.abc import Callable
from datetime import UTC, datetime

import httpx

from dream_drift.api.contracts import StoryReadResponse
from dream_drift.api.python_interface import StoryApiClient

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 30.0
COUNTDOWN_CYCLE_SECONDS = 120


def drift_label(drift_level: float) -> str:
    """Reader-facing name for a drift band."""
    if drift_level < 0.2:
        return "Lucid"
    if drift_level < 0.4:
        return "Hazy"
    if drift_level < 0.6:
        return "Surreal"
    if drift_level < 0.8:
        return "Fractured"
    return "Dissolved"


def seconds_until_next(last_update: datetime | None, *, now: datetime) -> int:
    """Remaining seconds in the current countdown cycle since the last update."""
    if last_update is None:
        return COUNTDOWN_CYCLE_SECONDS
    if last_update.tzinfo is None:
        last_update = last_update.replace(tzinfo=UTC)
    elapsed = max((now - last_update).total_seconds(), 0.0)
    return math.floor(COUNTDOWN_CYCLE_SECONDS - elapsed % COUNTDOWN_CYCLE_SECONDS)


def format_countdown(seconds: int) -> str:
    minutes, remainder = divmod(max(seconds, 0), 60)
    return f"{minutes}:{remainder:02d}"


def render_story(story: StoryReadResponse, *, now: datetime) -> str:
    """Plain-text view: paragraphs in order, then the drift and countdown footer."""
    if story.paragraphs:
        body = "\n\n".join(paragraph.content for paragraph in story.paragraphs)
    else:
        body = "The story has not started yet."
    countdown = format_countdown(seconds_until_next(story.last_update, now=now))
    footer = (
        f"Drift {story.drift_level:.2f} ({drift_label(story.drift_level)})"
        f" | {len(story.paragraphs)} paragraphs | Next in {countdown}"
    )
    return f"{body}\n\n{footer}"


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Read the drifting story from a terminal.")
    parser.add_argument("--api-base-url", default="http://127.0.0.1:8000")
    parser.add_argument("--interval", type=float, default=POLL_INTERVAL_SECONDS)
    parser.add_argument("--once", action="store_true", help="Render once and exit.")
    return parser


def main(
    argv: list[str] | None = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    parsed = build_arg_parser().parse_args(argv)
    client = StoryApiClient(api_base_url=str(parsed.api_base_url))
    interval = max(float(parsed.interval), 1.0)
    while True:
        try:
            story = client.fetch_story()
        except httpx.HTTPError as exc:
            logger.warning("reader.fetch_failed url=%s error=%s", client.api_base_url, exc)
            print(f"Error: {exc}")
            if parsed.once:
                return 1
        else:
            print(render_story(story, now=datetime.now(UTC)))
            if parsed.once:
                return 0
        sleep(interval)


if __name__ == "__main__":
    raise SystemExit(main())
