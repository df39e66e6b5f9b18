"""Command-line entry point: ``python -m taskflow`` serves the API."""

from __future__ import annotations

import argparse
from typing import Sequence

import uvicorn

from .config import get_settings
from .logging_setup import setup_logging


def main(argv: Sequence[str] | None = None) -> int:
    """Parse CLI arguments, configure logging and run the server."""

    parser = argparse.ArgumentParser(
        prog="taskflow",
        description="Run the TaskFlow task-tracking API server.",
    )
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes.")
    parser.add_argument("--log-file", default=None, help="Also write full logs to this file.")

    args = parser.parse_args(None if argv is None else list(argv))

    settings = get_settings()
    setup_logging(level=settings.log_level, log_file=args.log_file)

    uvicorn.run(
        "taskflow.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
