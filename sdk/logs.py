"""Root logger setup shared by the CLI and the API server."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%H:%M:%S"

LOG_LEVELS: dict[str, int] = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def parse_level(level_name: str) -> int:
    try:
        return LOG_LEVELS[level_name.strip().lower()]
    except KeyError:
        raise ValueError(
            f"unknown log level '{level_name}' (expected one of: {', '.join(LOG_LEVELS)})"
        ) from None


def configure_logging(level_name: str, log_file: Optional[Path] = None) -> None:
    """Send recorder logs to stderr and, when ``log_file`` is given, to that file.

    Replaces any handlers already on the root logger, so calling it twice
    does not duplicate output. Raises ``ValueError`` for an unknown level.
    """
    level = parse_level(level_name)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()
    root.setLevel(level)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
