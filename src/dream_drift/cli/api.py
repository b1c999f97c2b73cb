"""Serve the dream_drift HTTP API with uvicorn."""

from __future__ import annotations

import argparse
import os

import uvicorn

from dream_drift.adapters.observability import configure_runtime_logging

APP_IMPORT_PATH = "dream_drift.api.app:app"


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve the dream_drift trigger and story API.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="Restart on source changes.")
    parser.add_argument(
        "--db-path",
        default="",
        help="Story database path; exported as DREAM_DRIFT_DB_PATH for the app process.",
    )
    parser.add_argument(
        "--log-level",
        default="",
        help="Root log level; exported as DREAM_DRIFT_LOG_LEVEL.",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parsed = build_arg_parser().parse_args(argv)
    # The app module reads its settings from the environment at import time.
    for name, value in (
        ("DREAM_DRIFT_DB_PATH", str(parsed.db_path).strip()),
        ("DREAM_DRIFT_LOG_LEVEL", str(parsed.log_level).strip()),
    ):
        if value:
            os.environ[name] = value
    configure_runtime_logging()
    uvicorn.run(
        APP_IMPORT_PATH,
        host=str(parsed.host),
        port=int(parsed.port),
        reload=bool(parsed.reload),
    )


if __name__ == "__main__":
    main()
