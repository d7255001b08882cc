"""Run counters grouped by pipeline phase."""
from __future__ import annotations

from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass
from threading import RLock
from typing import Any, Dict, Iterator, Mapping

PHASE_COUNTERS: Mapping[str, tuple[str, ...]] = {
    "Scan": (
        "packages_seen",
        "packages_failed",
        "packages_denylisted",
        "packages_disabled",
        "cache_hits",
        "cache_stale",
        "no_plugin_match",
        "by_format",
    ),
    "Tasks": (
        "scheduled",
        "completed",
        "aborted",
        "records_added",
        "records_vetoed",
        "records_dropped",
        "plugin_failures",
        "sentinels",
    ),
    "Merge": ("groups", "subsumed"),
}

# Counters that take a label, e.g. the package suffix.
_LABELLED_COUNTERS: Mapping[str, frozenset[str]] = {
    "Scan": frozenset({"by_format"}),
}


@dataclass(frozen=True)
class CounterSnapshot:
    """Immutable snapshot of the registry state."""

    run_id: str | None
    counters: Mapping[str, Mapping[str, Any]]


class CounterRegistry:
    """Thread-safe registry of build counters.

    Worker threads increment ``Tasks`` counters concurrently, so every
    mutation takes the registry lock.
    """

    def __init__(self, *, run_id: str | None = None) -> None:
        self._lock = RLock()
        self._run_id = run_id
        self._data: Dict[str, Dict[str, Any]] = {
            phase: {counter: 0 for counter in counters}
            for phase, counters in PHASE_COUNTERS.items()
        }
        for phase, labelled in _LABELLED_COUNTERS.items():
            for counter in labelled:
                self._data[phase][counter] = Counter()
        self._phase_stack: list[str] = []

    # ------------------------------------------------------------------
    # Phase context helpers
    # ------------------------------------------------------------------
    def push_phase(self, phase: str) -> None:
        self.ensure_phase(phase)
        with self._lock:
            self._phase_stack.append(phase)

    def pop_phase(self, phase: str) -> None:
        with self._lock:
            if not self._phase_stack or self._phase_stack[-1] != phase:
                raise RuntimeError("Phase stack out of sync during pop")
            self._phase_stack.pop()

    @contextmanager
    def phase(self, phase: str) -> Iterator["CounterRegistry"]:
        """Make *phase* the implicit target of increments inside the block."""

        self.push_phase(phase)
        try:
            yield self
        finally:
            self.pop_phase(phase)

    def current_phase(self) -> str | None:
        with self._lock:
            return self._phase_stack[-1] if self._phase_stack else None

    # ------------------------------------------------------------------
    # Counter manipulation
    # ------------------------------------------------------------------
    def _resolve(self, counter: str, phase: str | None) -> str:
        target_phase = phase or self.current_phase()
        if target_phase is None:
            raise RuntimeError("No active phase for counter update")
        self.ensure_phase(target_phase)
        if counter not in PHASE_COUNTERS[target_phase]:
            raise KeyError(f"Unknown counter '{counter}' for phase '{target_phase}'")
        return target_phase

    def increment(
        self,
        counter: str,
        value: int = 1,
        *,
        phase: str | None = None,
        label: str | None = None,
    ) -> None:
        """Increment *counter* within *phase* by *value*.

        Labelled counters (``by_format``) require *label*; plain counters
        reject it.
        """

        target_phase = self._resolve(counter, phase)
        with self._lock:
            slot = self._data[target_phase][counter]
            if isinstance(slot, Counter):
                if label is None:
                    raise ValueError(f"Counter '{counter}' requires a label but none was provided")
                slot[label] += value
            else:
                if label is not None:
                    raise ValueError(f"Counter '{counter}' does not support labelled increments")
                self._data[target_phase][counter] = int(slot) + int(value)

    def get(self, counter: str, *, phase: str | None = None) -> Any:
        target_phase = self._resolve(counter, phase)
        with self._lock:
            value = self._data[target_phase][counter]
            return dict(value) if isinstance(value, Counter) else int(value)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------
    def snapshot(self) -> CounterSnapshot:
        with self._lock:
            frozen: Dict[str, Dict[str, Any]] = {}
            for phase in sorted(self._data):
                counters: Dict[str, Any] = {}
                for name in PHASE_COUNTERS[phase]:
                    value = self._data[phase][name]
                    if isinstance(value, Counter):
                        counters[name] = {label: value[label] for label in sorted(value)}
                    else:
                        counters[name] = int(value)
                frozen[phase] = counters
        return CounterSnapshot(run_id=self._run_id, counters=frozen)

    def as_dict(self) -> Dict[str, Any]:
        snap = self.snapshot()
        return {
            "run_id": snap.run_id,
            "counters": {phase: dict(counters) for phase, counters in snap.counters.items()},
        }

    def ensure_phase(self, phase: str) -> None:
        if phase not in PHASE_COUNTERS:
            raise KeyError(f"Unknown observability phase '{phase}'")

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"CounterRegistry(run_id={self._run_id!r}, counters={self._data!r})"


__all__ = ["PHASE_COUNTERS", "CounterSnapshot", "CounterRegistry"]
