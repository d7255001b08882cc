"""Plugin capabilities.

Plugins are registered once at startup. Each declares the capabilities it
implements as a fixed set of tags; the pipeline dispatches on those tags and
on filename glob matches.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import FrozenSet, List, Sequence, Tuple

from appstream_builder.entities.core import Component
from appstream_builder.packages.base import Package
from appstream_builder.utils.helpers import glob_matches_any


class PluginError(RuntimeError):
    """A single plugin call failed; only that plugin's contribution is lost."""


class Capability(str, Enum):
    EXTRACT = "extract"
    REFINE = "refine"
    MERGE = "merge"


class Plugin:
    """Base class for built-in plugins.

    ``globs`` decide whether a package is handed to the plugin at all.
    ``file_globs`` name every file the plugin reads from the workspace and
    default to ``globs``.
    """

    name: str = ""
    globs: Tuple[str, ...] = ()
    extra_file_globs: Tuple[str, ...] = ()
    capabilities: FrozenSet[Capability] = frozenset()
    merge_key_names: Tuple[str, ...] = ()

    @property
    def file_globs(self) -> Tuple[str, ...]:
        return self.globs + self.extra_file_globs

    def has(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def check_filename(self, filename: str) -> bool:
        return glob_matches_any(filename, self.globs)

    def matching_files(self, package: Package) -> List[str]:
        return [path for path in package.filelist if self.check_filename(path)]

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------
    def extract(self, package: Package, workspace: Path) -> List[Component]:
        raise NotImplementedError(f"{self.name} does not extract")

    def refine(self, package: Package, record: Component, workspace: Path) -> None:
        raise NotImplementedError(f"{self.name} does not refine")

    def score(self, record: Component) -> int:
        return 0

    def merge(
        self, group_key: str, records: Sequence[Component]
    ) -> Tuple[Component, List[Component]]:
        """Pick the lowest scoring record of *records*; ties keep the first.

        Every other record is subsumed into the canonical one.
        """

        canonical = records[0]
        best = self.score(canonical)
        for record in records[1:]:
            score = self.score(record)
            if score < best:
                canonical, best = record, score
        subsumed = [record for record in records if record is not canonical]
        for record in subsumed:
            canonical.subsume(record)
        return canonical, subsumed

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<Plugin {self.name}>"


__all__ = ["PluginError", "Capability", "Plugin"]
