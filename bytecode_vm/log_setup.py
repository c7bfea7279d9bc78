"""
Logging setup for the command-line tools.

The library modules only create loggers (``logging.getLogger(__name__)``);
handlers are attached here, once, by the CLI entry points.

Console: rich handler, WARNING+ by default.
File:    optional, captures DEBUG+ with the pipe-separated format
         ``time | level | logger | func:line | message``.
"""

from __future__ import annotations
import logging
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

__all__ = ['setup_logging']

LOGGER_NAME = "bytecode_vm"


def setup_logging(
    console_level: int = logging.WARNING,
    log_file: Optional[Union[str, Path]] = None,
    name: str = LOGGER_NAME,
) -> logging.Logger:
    """Configure and return the package logger.

    Safe to call more than once: existing handlers are replaced, so the
    last call wins.
    """
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.DEBUG if log_file else console_level)
    logger.propagate = False

    # ── Console handler: stderr so it never mixes with program output ──
    ch = RichHandler(
        console=Console(stderr=True),
        level=console_level,
        show_time=True,
        show_path=False,
        rich_tracebacks=True,
    )
    ch.setLevel(console_level)
    logger.addHandler(ch)

    # ── File handler: captures everything (DEBUG+) ──
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(log_path), encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-7s | %(name)s | %(funcName)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        logger.addHandler(fh)
        logger.info("Log file: %s", log_path)

    return logger
