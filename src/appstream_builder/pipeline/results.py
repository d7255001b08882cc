"""Shared, lock-guarded result set filled by concurrent tasks."""

from __future__ import annotations

import threading
from typing import Callable, Iterable, List, Tuple

from appstream_builder.entities.core import Component
from appstream_builder.utils.logging import get_logger

_LOGGER = get_logger(module=__name__)

ProgressCallback = Callable[[int, int, str], None]


class ResultSet:
    """Append-only collection of records plus the package progress counter.

    Every mutation happens under a single lock; the merge pass replaces the
    contents once the worker pool has drained.
    """

    def __init__(self, *, total: int = 0, progress: ProgressCallback | None = None) -> None:
        self._lock = threading.Lock()
        self._records: List[Component] = []
        self._completed = 0
        self._total = total
        self._progress = progress

    def add(self, records: Iterable[Component]) -> int:
        batch = list(records)
        with self._lock:
            self._records.extend(batch)
        return len(batch)

    @property
    def records(self) -> List[Component]:
        with self._lock:
            return list(self._records)

    def replace(self, records: Iterable[Component]) -> None:
        with self._lock:
            self._records = list(records)

    def set_total(self, total: int) -> None:
        with self._lock:
            self._total = total

    def package_done(self, name: str) -> Tuple[int, int]:
        """Advance the progress counter and report ``completed/total``."""

        with self._lock:
            self._completed += 1
            completed, total = self._completed, self._total
        _LOGGER.info("Processed {}/{} {}", completed, total, name)
        if self._progress is not None:
            self._progress(completed, total, name)
        return completed, total

    @property
    def completed(self) -> int:
        with self._lock:
            return self._completed

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


__all__ = ["ResultSet", "ProgressCallback"]
