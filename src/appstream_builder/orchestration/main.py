"""High-level entry point that runs a complete catalog build."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from time import perf_counter
from typing import Any, Dict, Iterable, List, Optional, Sequence

from appstream_builder.config.settings import Settings
from appstream_builder.entities.core import Component
from appstream_builder.observability import CounterRegistry
from appstream_builder.output.writer import CatalogWriter
from appstream_builder.packages.base import LogLevel, Package, PackageError
from appstream_builder.packages.loader import READERS, open_package
from appstream_builder.pipeline.cache import CacheIndex, CacheLoadError, cache_key_for
from appstream_builder.pipeline.context import PackageUniverse, RunContext
from appstream_builder.pipeline.dedup import disable_older
from appstream_builder.pipeline.merge import MergeEngine
from appstream_builder.pipeline.results import ProgressCallback, ResultSet
from appstream_builder.pipeline.scheduler import TaskScheduler
from appstream_builder.pipeline.task import Task
from appstream_builder.plugins import PluginRegistry, default_registry
from appstream_builder.utils.helpers import ensure_directory, ensure_empty_directory, glob_matches_any
from appstream_builder.utils.logging import get_logger, log_timing, logging_context, run_log

from .extra import load_extra_components
from .manifest import BuildManifest

_LOGGER = get_logger(module=__name__)


class BuildError(RuntimeError):
    """Setup failed and the run cannot produce a catalog."""


@dataclass(slots=True)
class BuildResult:
    records: List[Component]
    tasks: List[Task]
    catalog_path: Path
    icons_path: Path
    manifest_path: Path
    counters: Dict[str, Any] = field(default_factory=dict)


def discover_packages(packages_dir: Path | str) -> List[Path]:
    """Every package file directly inside *packages_dir*, sorted by name."""

    root = Path(packages_dir)
    if not root.is_dir():
        return []
    return sorted(path for path in root.iterdir() if path.is_file() and path.suffix.lower() in READERS)


class BuildOrchestrator:
    """Scans packages, runs the task pool, merges and writes the catalog."""

    def __init__(
        self,
        *,
        settings: Settings,
        registry: PluginRegistry | None = None,
        progress: ProgressCallback | None = None,
        run_id: str | None = None,
    ) -> None:
        self._settings = settings
        self._registry = registry or default_registry()
        self._progress = progress
        self._run_id = run_id or datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        self._counters = CounterRegistry(run_id=self._run_id)
        self._manifest = BuildManifest(self._run_id)
        self._writer = CatalogWriter()

    @property
    def counters(self) -> CounterRegistry:
        return self._counters

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------
    def _load_cache(self) -> CacheIndex:
        old = self._settings.old_metadata
        if old is None:
            return CacheIndex()
        try:
            return CacheIndex.from_catalog(old)
        except CacheLoadError as exc:
            raise BuildError(str(exc)) from exc

    def _prepare_icons_dir(self) -> None:
        icons_dir = self._settings.icons_dir
        try:
            if self._settings.old_metadata is None:
                ensure_empty_directory(icons_dir)
            else:
                ensure_directory(icons_dir)
        except OSError as exc:
            raise BuildError(f"Cannot prepare icon directory {icons_dir}: {exc}") from exc

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------
    def _open_packages(self, filenames: Sequence[Path]) -> List[Package]:
        policy = self._settings.policies.packages
        opened: List[Package] = []
        with self._counters.phase("Scan"):
            for filename in filenames:
                self._counters.increment("packages_seen")
                try:
                    package = open_package(filename)
                except PackageError as exc:
                    self._counters.increment("packages_failed")
                    _LOGGER.warning("Failed to open package {}: {}", Path(filename).name, exc)
                    continue
                self._counters.increment("by_format", label=package.suffix.lstrip("."))
                if glob_matches_any(package.name or "", policy.denylisted_packages):
                    self._counters.increment("packages_denylisted")
                    _LOGGER.info("{} is denylisted", package.name)
                    continue
                opened.append(package)
        return opened

    def _plan(self, ctx: RunContext) -> List[Task]:
        """Turn enabled packages into tasks, answering cache hits directly."""

        tasks: List[Task] = []
        claimed: set[int] = set()
        present = {cache_key_for(package.filename) for package in ctx.universe.enabled}
        with self._counters.phase("Scan"):
            for package in ctx.universe.enabled:
                key = cache_key_for(package.filename)
                cached = ctx.cache.lookup(key)
                # A record reached through merged_cache_ids is only current
                # while the package that produced it is still unchanged.
                if cached is not None and any(record.cache_id not in present for record in cached):
                    self._counters.increment("cache_stale")
                    package.log.log(LogLevel.DEBUG, "Cached records for %s are stale", package.basename)
                    cached = None
                if cached is not None:
                    self._counters.increment("cache_hits")
                    package.log.log(LogLevel.DEBUG, "Skipping %s as found in old metadata", package.basename)
                    fresh = [record for record in cached if id(record) not in claimed]
                    claimed.update(id(record) for record in fresh)
                    ctx.results.add(record.model_copy(deep=True) for record in fresh)
                    continue
                plugins = self._registry.plugins_for(package)
                if not plugins:
                    self._counters.increment("no_plugin_match")
                    package.log.log(LogLevel.INFO, "No plugins matched %s", package.basename)
                    package.log.flush(ctx.log_dir)
                    continue
                tasks.append(
                    Task(
                        package=package,
                        workspace=ctx.workspace_for(package),
                        plugins=plugins,
                        cache_key=key,
                    )
                )
        return tasks

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------
    def run(self, filenames: Iterable[Path | str] | None = None) -> BuildResult:
        settings = self._settings
        output_policy = settings.policies.output
        with run_log(settings.paths.log_dir, self._run_id), logging_context(run_id=self._run_id):
            started = perf_counter()
            self._manifest.collect_versions(settings=settings)
            self._manifest.capture_configuration(settings=settings)

            cache = self._load_cache()
            self._prepare_icons_dir()
            ctx = RunContext(
                settings=settings,
                registry=self._registry,
                results=ResultSet(progress=self._progress),
                cache=cache,
                counters=self._counters,
                add_cache_id=output_policy.add_cache_id or settings.old_metadata is not None,
            )
            ctx.results.add(load_extra_components(settings.extra_components_dir))

            files = [Path(name) for name in filenames] if filenames else discover_packages(settings.paths.packages_dir)
            packages = self._open_packages(files)
            ctx.universe = PackageUniverse(packages)
            with self._counters.phase("Scan"):
                self._counters.increment("packages_disabled", len(disable_older(packages)))
            tasks = self._plan(ctx)
            self._manifest.record_timing("scan", perf_counter() - started)

            ctx.results.set_total(len(tasks))
            tasks_started = perf_counter()
            TaskScheduler(ctx).run(tasks)
            self._manifest.record_timing("tasks", perf_counter() - tasks_started)

            for package in ctx.universe:
                if not package.log.flushed and package.log.entries:
                    package.log.flush(ctx.log_dir, name=None if package.enabled else package.nevra)

            with log_timing("merge"):
                merged = MergeEngine(self._registry, self._counters).run(ctx.results)

            output_dir = settings.paths.output_dir
            catalog = self._writer.write_catalog(
                merged,
                output_dir,
                basename=output_policy.basename,
                api_version=output_policy.api_version,
            )
            icons = self._writer.write_icons(settings.icons_dir, output_dir, basename=output_policy.basename)
            self._manifest.add_artifact(catalog, kind="catalog")
            self._manifest.add_artifact(icons, kind="icons")
            self._manifest.record_timing("total", perf_counter() - started)
            self._manifest.capture_counters(self._counters)
            manifest = self._manifest.write(output_dir, output_policy.basename)
            _LOGGER.info("Build finished", records=len(merged), tasks=len(tasks))

        return BuildResult(
            records=merged,
            tasks=list(tasks),
            catalog_path=catalog,
            icons_path=icons,
            manifest_path=manifest,
            counters=self._counters.as_dict()["counters"],
        )


def run_build(
    filenames: Iterable[Path | str] | None = None,
    *,
    settings: Optional[Settings] = None,
    config_overrides: Optional[Dict[str, Any]] = None,
    registry: PluginRegistry | None = None,
    progress: ProgressCallback | None = None,
) -> BuildResult:
    """Build a catalog from *filenames* (or the configured packages directory)."""

    cfg = settings or Settings(**(config_overrides or {}))
    orchestrator = BuildOrchestrator(settings=cfg, registry=registry, progress=progress)
    return orchestrator.run(filenames)


__all__ = ["BuildError", "BuildOrchestrator", "BuildResult", "discover_packages", "run_build"]
