"""Package processing pipeline: cache, dedup, tasks and merge."""

from .cache import CacheIndex, CacheLoadError, cache_key_for
from .context import PackageUniverse, RunContext
from .dedup import disable_older
from .exploder import explode_package, overlay_names
from .merge import MergeEngine
from .results import ResultSet
from .scheduler import TaskScheduler
from .task import TRANSITIONS, Task, TaskState, TaskStateError, run_task
from .validation import UrlChecker, finalize_vetoes, inherit_package_data, screen_records

__all__ = [
    "CacheIndex",
    "CacheLoadError",
    "MergeEngine",
    "PackageUniverse",
    "ResultSet",
    "RunContext",
    "TRANSITIONS",
    "Task",
    "TaskScheduler",
    "TaskState",
    "TaskStateError",
    "UrlChecker",
    "cache_key_for",
    "disable_older",
    "explode_package",
    "finalize_vetoes",
    "inherit_package_data",
    "overlay_names",
    "run_task",
    "screen_records",
]
