from __future__ import annotations

import logging
import sys
from pathlib import Path


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the console readable:
    - allow every taskflow log
    - uvicorn access/error logs at INFO+
    - any other third-party logger only at WARNING+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name == "taskflow" or name.startswith("taskflow."):
            return True

        if name.startswith("uvicorn"):
            return record.levelno >= logging.INFO

        # SQLAlchemy engine echo is far too chatty for the console.
        return record.levelno >= logging.WARNING


def setup_logging(
    *,
    level: int | str = logging.INFO,
    log_file: str | Path | None = None,
) -> None:
    """
    Configure root logging with a filtered console handler and an optional
    file handler that receives everything.

    Call this once, before the application starts serving.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(log_file), encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(fmt)
        root.addHandler(fh)

    logging.captureWarnings(True)
