"""Observability helpers for build runs."""

from .registry import PHASE_COUNTERS, CounterRegistry, CounterSnapshot

__all__ = ["PHASE_COUNTERS", "CounterRegistry", "CounterSnapshot"]
