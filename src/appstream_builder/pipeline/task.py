"""Per-package task and its state machine.

A task walks ``Queued -> Exploding -> Extracting -> Validating -> Refining
-> Aggregated -> CleanedUp``. ``Aborted`` can be entered from Exploding,
Extracting or Refining and is final; the workspace is removed and the
package log flushed in every case.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, List

from appstream_builder.entities.core import CACHE_ID_KEY, Component, placeholder_for
from appstream_builder.packages.base import LogLevel, Package, PackageError
from appstream_builder.plugins.base import Capability, Plugin
from appstream_builder.utils.helpers import ensure_directory, is_within, remove_tree
from appstream_builder.utils.logging import get_logger, logging_context

from .context import RunContext
from .exploder import explode_package
from .validation import UrlChecker, finalize_vetoes, inherit_package_data, screen_records

_LOGGER = get_logger(module=__name__)


class TaskState(str, Enum):
    QUEUED = "Queued"
    EXPLODING = "Exploding"
    EXTRACTING = "Extracting"
    VALIDATING = "Validating"
    REFINING = "Refining"
    AGGREGATED = "Aggregated"
    CLEANED_UP = "CleanedUp"
    ABORTED = "Aborted"


TRANSITIONS: Dict[TaskState, FrozenSet[TaskState]] = {
    TaskState.QUEUED: frozenset({TaskState.EXPLODING}),
    TaskState.EXPLODING: frozenset({TaskState.EXTRACTING, TaskState.ABORTED}),
    TaskState.EXTRACTING: frozenset({TaskState.VALIDATING, TaskState.ABORTED}),
    TaskState.VALIDATING: frozenset({TaskState.REFINING}),
    TaskState.REFINING: frozenset({TaskState.AGGREGATED, TaskState.ABORTED}),
    TaskState.AGGREGATED: frozenset({TaskState.CLEANED_UP}),
    TaskState.CLEANED_UP: frozenset(),
    TaskState.ABORTED: frozenset(),
}


class TaskStateError(RuntimeError):
    """An illegal state transition was requested."""


@dataclass
class Task:
    """Binds one package to its workspace and matched plugins."""

    package: Package
    workspace: Path
    plugins: List[Plugin]
    cache_key: str
    state: TaskState = TaskState.QUEUED
    history: List[TaskState] = field(default_factory=lambda: [TaskState.QUEUED])
    records_added: int = 0

    def transition(self, new_state: TaskState) -> None:
        if new_state not in TRANSITIONS[self.state]:
            raise TaskStateError(f"{self.package.name}: {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    @property
    def finished(self) -> bool:
        return not TRANSITIONS[self.state]


def _extract(ctx: RunContext, task: Task) -> List[Component] | None:
    """Run every matched extractor; ``None`` means every one of them failed."""

    package = task.package
    extractors = [plugin for plugin in task.plugins if plugin.has(Capability.EXTRACT)]
    records: List[Component] = []
    failures = 0
    for plugin in extractors:
        try:
            found = plugin.extract(package, task.workspace)
        except Exception as exc:
            failures += 1
            ctx.counters.increment("plugin_failures", phase="Tasks")
            package.log.log(LogLevel.WARNING, "Failed to run plugin %s: %s", plugin.name, exc)
            continue
        package.log.log(LogLevel.DEBUG, "Plugin %s found %d records", plugin.name, len(found))
        records.extend(found)
    if extractors and failures == len(extractors):
        return None
    return records


def _refine(ctx: RunContext, task: Task, records: List[Component]) -> tuple[List[Component], bool]:
    """Refine *records* in order; stop at the first refine failure."""

    package = task.package
    refined: List[Component] = []
    for record in records:
        inherit_package_data(package, record)
        try:
            for plugin in ctx.registry.refiners:
                plugin.refine(package, record, task.workspace)
        except Exception as exc:
            ctx.counters.increment("plugin_failures", phase="Tasks")
            package.log.log(
                LogLevel.WARNING,
                "Failed to refine %s, skipping %d remaining records: %s",
                record.id,
                len(records) - len(refined),
                exc,
            )
            return refined, False
        finalize_vetoes(record)
        refined.append(record)
    return refined, True


def _aggregate(ctx: RunContext, task: Task, records: List[Component]) -> None:
    package = task.package
    checker = None
    if ctx.policies.validation.check_urls:
        checker = UrlChecker(ctx.policies.validation.url_timeout_s)

    kept: List[Component] = []
    for record in records:
        if record.is_vetoed:
            ctx.counters.increment("records_vetoed", phase="Tasks")
            package.log.log(
                LogLevel.WARNING, "%s not included in the metadata: %s", record.id, "; ".join(record.vetoes)
            )
            continue
        if checker is not None:
            checker.check(package, record)
        if ctx.add_cache_id:
            record.add_metadata(CACHE_ID_KEY, task.cache_key, replace=True)
        resources = record.resources
        if resources:
            icons_dir = ensure_directory(ctx.icons_dir)
            for filename, data in resources.items():
                (icons_dir / filename).write_bytes(data)
        package.log.log(
            LogLevel.NONE,
            "%s",
            json.dumps(record.model_dump(mode="json", exclude_none=True), indent=2, sort_keys=True),
        )
        kept.append(record)
    task.records_added += ctx.results.add(kept)
    ctx.counters.increment("records_added", len(kept), phase="Tasks")


def _abort(ctx: RunContext, task: Task, reason: str) -> None:
    task.package.log.log(LogLevel.WARNING, "%s", reason)
    ctx.counters.increment("aborted", phase="Tasks")
    task.transition(TaskState.ABORTED)


def _process(ctx: RunContext, task: Task) -> None:
    package = task.package

    task.transition(TaskState.EXPLODING)
    try:
        explode_package(
            package,
            task.workspace,
            universe=ctx.universe,
            policy=ctx.policies.packages,
            globs=ctx.registry.all_globs(),
        )
    except (PackageError, OSError) as exc:
        _abort(ctx, task, f"Failed to explode {package.basename}: {exc}")
        return

    task.transition(TaskState.EXTRACTING)
    records = _extract(ctx, task)
    if records is None:
        _abort(ctx, task, "Every matched plugin failed")
        return

    task.transition(TaskState.VALIDATING)
    screened = screen_records(package, records, ctx.policies.validation)
    dropped = len(records) - len(screened)
    if dropped:
        ctx.counters.increment("records_dropped", dropped, phase="Tasks")

    task.transition(TaskState.REFINING)
    refined, ok = _refine(ctx, task, screened)
    _aggregate(ctx, task, refined)
    if not ok:
        _abort(ctx, task, "Refining aborted")
        return
    task.transition(TaskState.AGGREGATED)


def run_task(ctx: RunContext, task: Task) -> Task:
    """Run *task* to completion; failures stay inside the task."""

    package = task.package
    with logging_context(package=package.name or package.basename):
        try:
            _process(ctx, task)
        except Exception as exc:
            _LOGGER.exception("Unexpected failure processing {}", package.basename)
            package.log.log(LogLevel.WARNING, "Unexpected failure: %s", exc)
            if not task.finished and TaskState.ABORTED in TRANSITIONS[task.state]:
                task.transition(TaskState.ABORTED)
            ctx.counters.increment("aborted", phase="Tasks")
        finally:
            if task.records_added == 0:
                ctx.results.add([placeholder_for(package.name or package.basename, task.cache_key)])
                ctx.counters.increment("sentinels", phase="Tasks")
                package.log.log(LogLevel.INFO, "No records emitted, adding cache marker")
            try:
                if is_within(ctx.settings.paths.temp_dir, task.workspace):
                    remove_tree(task.workspace)
                else:
                    package.log.log(LogLevel.WARNING, "Not deleting %s: outside the temp directory", task.workspace)
            except OSError as exc:
                package.log.log(LogLevel.WARNING, "Failed to delete tree: %s", exc)
            if task.state is TaskState.AGGREGATED:
                task.transition(TaskState.CLEANED_UP)
            ctx.counters.increment("completed", phase="Tasks")
            package.log.flush(ctx.log_dir)
            ctx.results.package_done(package.name or package.basename)
    return task


__all__ = ["TaskState", "TRANSITIONS", "TaskStateError", "Task", "run_task"]
