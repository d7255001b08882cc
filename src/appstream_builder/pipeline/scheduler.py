"""Fixed-size worker pool draining one task per package."""

from __future__ import annotations

import contextvars
import queue
import threading
from typing import List, Sequence

from appstream_builder.utils.logging import get_logger

from .context import RunContext
from .task import Task, run_task

_LOGGER = get_logger(module=__name__)
_STOP = None


class TaskScheduler:
    """Runs tasks on ``max_threads`` workers and blocks until all are done.

    Workers pull from a bounded queue; :meth:`run` returns only after every
    queued task has finished, so callers can rely on a stable result set.
    """

    def __init__(self, ctx: RunContext, *, max_threads: int | None = None) -> None:
        self._ctx = ctx
        self._max_threads = max(1, max_threads or ctx.policies.scheduler.max_threads)

    @property
    def max_threads(self) -> int:
        return self._max_threads

    def run(self, tasks: Sequence[Task]) -> List[Task]:
        if not tasks:
            return []
        width = min(self._max_threads, len(tasks))
        pending: "queue.Queue[Task | None]" = queue.Queue(maxsize=width * 2)
        errors: List[BaseException] = []

        def _worker() -> None:
            while True:
                task = pending.get()
                try:
                    if task is _STOP:
                        return
                    run_task(self._ctx, task)
                except BaseException as exc:  # pragma: no cover - run_task contains failures
                    errors.append(exc)
                finally:
                    pending.task_done()

        workers = [
            threading.Thread(
                target=contextvars.copy_context().run,
                args=(_worker,),
                name=f"task-worker-{index}",
                daemon=True,
            )
            for index in range(width)
        ]
        for worker in workers:
            worker.start()
        _LOGGER.info("Scheduling tasks", tasks=len(tasks), threads=width)
        for task in tasks:
            self._ctx.counters.increment("scheduled", phase="Tasks")
            pending.put(task)
        for _ in workers:
            pending.put(_STOP)
        pending.join()
        for worker in workers:
            worker.join()
        if errors:
            raise RuntimeError(f"{len(errors)} task worker(s) crashed") from errors[0]
        return list(tasks)


__all__ = ["TaskScheduler"]
