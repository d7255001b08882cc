"""Centralised logging configuration built on loguru.

Two kinds of sinks exist. :func:`configure_logging` installs the process
wide stderr and rotating file sinks. :func:`run_log` adds a sink for the
duration of one build that only receives records bound to that build's
``run_id``, so every run leaves ``<log_dir>/runs/<run_id>.log`` behind
next to the per-package logs.
"""

from __future__ import annotations

import sys
from contextlib import contextmanager
from pathlib import Path
from time import perf_counter
from typing import Any, Dict, Iterator

from loguru import logger

from ..config.settings import Settings, get_settings

_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[package]}</magenta> | "
    "{message}"
)

_FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
    "{level: <8} | "
    "{extra[run_id]} | "
    "{extra[package]} | "
    "{thread.name} | "
    "{message}"
)

_DEFAULT_EXTRA = {"run_id": "-", "package": "-"}


def _with_defaults(template: str):
    def _format(record: Dict[str, Any]) -> str:
        for key, value in _DEFAULT_EXTRA.items():
            record["extra"].setdefault(key, value)
        return template + "\n{exception}"

    return _format


def configure_logging(settings: Settings | None = None, level: str = "INFO") -> None:
    """Initialise loguru sinks according to the active settings."""

    cfg = settings or get_settings()
    log_path = cfg.log_file
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        enqueue=True,
        backtrace=False,
        diagnose=False,
        format=_with_defaults(_CONSOLE_FORMAT),
    )
    logger.add(
        log_path,
        rotation="10 MB",
        retention="14 days",
        enqueue=True,
        format=_with_defaults(_FILE_FORMAT),
        level="DEBUG",
    )
    logger.configure(extra=dict(_DEFAULT_EXTRA))


@contextmanager
def run_log(log_dir: Path | str, run_id: str, *, level: str = "DEBUG") -> Iterator[Path]:
    """Mirror records bound to *run_id* into ``<log_dir>/runs/<run_id>.log``."""

    path = Path(log_dir) / "runs" / f"{run_id}.log"
    path.parent.mkdir(parents=True, exist_ok=True)
    sink_id = logger.add(
        path,
        level=level,
        format=_with_defaults(_FILE_FORMAT),
        filter=lambda record: record["extra"].get("run_id") == run_id,
    )
    try:
        yield path
    finally:
        logger.remove(sink_id)


def get_logger(**context: Any):
    """Return a contextualised logger instance."""

    return logger.bind(**context)


@contextmanager
def logging_context(**context: Any):
    """Context manager that temporarily binds structured context fields."""

    with logger.contextualize(**context):
        yield logger


@contextmanager
def log_timing(step: str, *, logger_=logger):
    """Log elapsed wall time for a block."""

    start = perf_counter()
    try:
        yield
    finally:
        logger_.info("Step timing", step=step, seconds=round(perf_counter() - start, 3))


__all__ = ["configure_logging", "get_logger", "logging_context", "log_timing", "run_log"]
