"""Registry of the plugins available to a build run."""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from appstream_builder.packages.base import Package

from .base import Capability, Plugin


class PluginRegistry:
    """Ordered, name-unique collection of plugins."""

    def __init__(self, plugins: Iterable[Plugin] | None = None) -> None:
        self._plugins: List[Plugin] = []
        for plugin in plugins or ():
            self.register(plugin)

    def register(self, plugin: Plugin) -> Plugin:
        if not plugin.name:
            raise ValueError("Plugins must declare a name")
        if any(existing.name == plugin.name for existing in self._plugins):
            raise ValueError(f"Plugin '{plugin.name}' is already registered")
        self._plugins.append(plugin)
        return plugin

    @property
    def plugins(self) -> Tuple[Plugin, ...]:
        return tuple(self._plugins)

    def get(self, name: str) -> Plugin | None:
        for plugin in self._plugins:
            if plugin.name == name:
                return plugin
        return None

    def match(self, filename: str) -> Plugin | None:
        """Return the first registered plugin whose globs match *filename*."""

        for plugin in self._plugins:
            if plugin.check_filename(filename):
                return plugin
        return None

    def plugins_for(self, package: Package) -> List[Plugin]:
        """Plugins matched by any file of *package*, each at most once.

        The result follows registration order.
        """

        matched: set[int] = set()
        for filename in package.filelist:
            plugin = self.match(filename)
            if plugin is not None:
                matched.add(id(plugin))
        return [plugin for plugin in self._plugins if id(plugin) in matched]

    def with_capability(self, capability: Capability) -> List[Plugin]:
        return [plugin for plugin in self._plugins if plugin.has(capability)]

    @property
    def refiners(self) -> List[Plugin]:
        return self.with_capability(Capability.REFINE)

    @property
    def mergers(self) -> List[Plugin]:
        return self.with_capability(Capability.MERGE)

    def all_globs(self) -> Sequence[str]:
        """Every file glob any plugin reads, in registration order."""

        seen: List[str] = []
        for plugin in self._plugins:
            for pattern in plugin.file_globs:
                if pattern not in seen:
                    seen.append(pattern)
        return seen

    def __len__(self) -> int:
        return len(self._plugins)

    def __iter__(self):
        return iter(self._plugins)


__all__ = ["PluginRegistry"]
