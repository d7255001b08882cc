"""Incremental cache backed by the catalog of a previous run."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List

from appstream_builder.entities.core import Component
from appstream_builder.output.writer import CatalogError, read_catalog
from appstream_builder.utils.logging import get_logger

_LOGGER = get_logger(module=__name__)


class CacheLoadError(RuntimeError):
    """The previous catalog could not be used as a cache."""


def cache_key_for(filename: Path | str) -> str:
    """Stable lookup key for a package file.

    Only the file name is used: package file names embed name, version,
    release and architecture, so an unchanged file keeps its key across
    runs and across repository moves.
    """

    return Path(filename).name


class CacheIndex:
    """Read-only mapping of cache key to records emitted for that key."""

    def __init__(self, records: Iterable[Component] = ()) -> None:
        self._by_key: Dict[str, List[Component]] = {}
        for record in records:
            for key in record.cache_keys():
                bucket = self._by_key.setdefault(key, [])
                if all(existing is not record for existing in bucket):
                    bucket.append(record)

    @classmethod
    def from_catalog(cls, path: Path | str) -> "CacheIndex":
        try:
            catalog = read_catalog(path)
        except CatalogError as exc:
            raise CacheLoadError(f"Cannot load cache from {path}: {exc}") from exc
        index = cls(catalog.components)
        _LOGGER.info("Loaded cache index", path=str(path), keys=len(index))
        return index

    def lookup(self, key: str) -> List[Component] | None:
        """Records previously emitted for *key*, or ``None`` on a miss."""

        records = self._by_key.get(key)
        return list(records) if records else None

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __len__(self) -> int:
        return len(self._by_key)


__all__ = ["CacheIndex", "CacheLoadError", "cache_key_for"]
