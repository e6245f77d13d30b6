"""Logging setup shared by the scheduler daemon and the status screen."""
from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

PACKAGE_LOGGERS = ("yarawatch_core", "yarawatch_app")


class TextFormatter(logging.Formatter):
    """Human-readable one-line records."""

    def format(self, record: logging.LogRecord) -> str:
        line = " ".join([
            datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S"),
            f"[{record.levelname:8s}]",
            f"{record.name}:",
            record.getMessage(),
        ])
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    extra_handlers: Iterable[logging.Handler] = (),
    console: bool = True,
) -> None:
    """Configure the package loggers. Safe to call again; handlers are replaced."""
    formatter = TextFormatter()
    handlers: list[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    handlers.extend(extra_handlers)
    for h in handlers:
        h.setFormatter(formatter)

    for name in PACKAGE_LOGGERS:
        pkg_logger = logging.getLogger(name)
        pkg_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        for old in list(pkg_logger.handlers):
            pkg_logger.removeHandler(old)
            old.close()
        for h in handlers:
            pkg_logger.addHandler(h)
