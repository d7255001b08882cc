"""Explicit run state handed to every task."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List

from appstream_builder.config.policies import Policies
from appstream_builder.config.settings import Settings
from appstream_builder.observability import CounterRegistry
from appstream_builder.packages.base import Package
from appstream_builder.plugins.registry import PluginRegistry
from appstream_builder.utils.helpers import is_within

from .cache import CacheIndex
from .results import ResultSet


class PackageUniverse:
    """Every package opened for the run, enabled or not."""

    def __init__(self, packages: Iterable[Package] = ()) -> None:
        self._packages: List[Package] = list(packages)
        self._by_name: Dict[str, List[Package]] = {}
        for package in self._packages:
            if package.name:
                self._by_name.setdefault(package.name, []).append(package)

    def find(self, name: str) -> Package | None:
        """Return the package called *name*, preferring an enabled one."""

        candidates = self._by_name.get(name, [])
        for package in candidates:
            if package.enabled:
                return package
        return candidates[0] if candidates else None

    @property
    def enabled(self) -> List[Package]:
        return [package for package in self._packages if package.enabled]

    def __iter__(self) -> Iterator[Package]:
        return iter(self._packages)

    def __len__(self) -> int:
        return len(self._packages)


@dataclass(slots=True)
class RunContext:
    """Configuration, plugins, cache and the shared result set for one run."""

    settings: Settings
    registry: PluginRegistry
    results: ResultSet = field(default_factory=ResultSet)
    cache: CacheIndex = field(default_factory=CacheIndex)
    counters: CounterRegistry = field(default_factory=CounterRegistry)
    universe: PackageUniverse = field(default_factory=PackageUniverse)
    add_cache_id: bool = False

    @property
    def policies(self) -> Policies:
        return self.settings.policies

    @property
    def log_dir(self) -> Path:
        return self.settings.paths.log_dir

    @property
    def icons_dir(self) -> Path:
        return self.settings.icons_dir

    def workspace_for(self, package: Package) -> Path:
        root = self.settings.paths.temp_dir / "workspaces"
        workspace = root / (package.name or package.basename)
        if not is_within(root, workspace) or workspace.resolve() == root.resolve():
            raise ValueError(f"Workspace for {package.basename} would escape {root}")
        return workspace


__all__ = ["PackageUniverse", "RunContext"]
