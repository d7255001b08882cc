"""Single-threaded merge pass over the complete result set."""

from __future__ import annotations

from typing import Dict, List, Sequence

from appstream_builder.entities.core import Component
from appstream_builder.observability import CounterRegistry
from appstream_builder.plugins.base import Plugin
from appstream_builder.plugins.registry import PluginRegistry
from appstream_builder.utils.logging import get_logger

from .results import ResultSet

_LOGGER = get_logger(module=__name__)


class MergeEngine:
    """Lets merge plugins fold records that share a grouping key.

    Plugins run in registry order, each over the output of the previous
    one; a plugin with several key names groups once per name. The
    canonical record of a group takes the position of the group's first
    member, so relative order is otherwise preserved.
    """

    def __init__(self, registry: PluginRegistry, counters: CounterRegistry | None = None) -> None:
        self._registry = registry
        self._counters = counters

    def merge(self, records: Sequence[Component]) -> List[Component]:
        current = list(records)
        for plugin in self._registry.mergers:
            for key_name in plugin.merge_key_names:
                current = self._merge_by(plugin, key_name, current)
        return current

    def run(self, results: ResultSet) -> List[Component]:
        merged = self.merge(results.records)
        results.replace(merged)
        return merged

    def _merge_by(self, plugin: Plugin, key_name: str, records: List[Component]) -> List[Component]:
        groups: Dict[str, List[int]] = {}
        for index, record in enumerate(records):
            value = record.get_metadata(key_name)
            if value:
                groups.setdefault(value, []).append(index)

        replacements: Dict[int, Component | None] = {}
        for group_key, indexes in groups.items():
            if len(indexes) < 2:
                continue
            canonical, subsumed = plugin.merge(group_key, [records[index] for index in indexes])
            for index in indexes:
                replacements[index] = None
            replacements[indexes[0]] = canonical
            _LOGGER.debug(
                "Merged group",
                plugin=plugin.name,
                key=key_name,
                group=group_key,
                canonical=canonical.id,
                subsumed=[record.id for record in subsumed],
            )
            if self._counters is not None:
                self._counters.increment("groups", phase="Merge")
                self._counters.increment("subsumed", len(subsumed), phase="Merge")

        merged: List[Component] = []
        for index, record in enumerate(records):
            if index not in replacements:
                merged.append(record)
            elif replacements[index] is not None:
                merged.append(replacements[index])
        return merged


__all__ = ["MergeEngine"]
