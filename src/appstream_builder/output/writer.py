"""Catalog and icon bundle persistence."""

from __future__ import annotations

import gzip
import json
import tarfile
import zlib
from pathlib import Path
from typing import Iterable, List

from pydantic import BaseModel, Field, ValidationError

from ..entities.core import Component
from ..utils import ensure_directory, get_logger

_EXCLUDED_FIELDS = {"vetoes", "requires_appdata"}


class CatalogError(RuntimeError):
    """A catalog file is missing or cannot be decoded."""


class Catalog(BaseModel):
    origin: str
    api_version: float
    components: List[Component] = Field(default_factory=list)


def catalog_path(output_dir: Path | str, basename: str) -> Path:
    return Path(output_dir) / f"{basename}.json.gz"


def icons_path(output_dir: Path | str, basename: str) -> Path:
    return Path(output_dir) / f"{basename}-icons.tar.gz"


def read_catalog(path: Path | str) -> Catalog:
    """Load a catalog written by :class:`CatalogWriter`."""

    source = Path(path)
    try:
        with gzip.open(source, "rt", encoding="utf-8") as handle:
            payload = json.load(handle)
        return Catalog.model_validate(payload)
    except (OSError, EOFError, zlib.error, json.JSONDecodeError, ValidationError) as exc:
        raise CatalogError(f"{source}: {exc}") from exc


class CatalogWriter:
    """Writes the final catalog and bundles cached icons."""

    def __init__(self) -> None:
        self._logger = get_logger(module=__name__)

    def write_catalog(
        self,
        records: Iterable[Component],
        output_dir: Path | str,
        *,
        basename: str,
        api_version: float,
    ) -> Path:
        """Write non-vetoed *records* sorted by id to ``<basename>.json.gz``."""

        path = catalog_path(output_dir, basename)
        ensure_directory(path.parent)
        kept = sorted(
            (record for record in records if not record.is_vetoed and record.id),
            key=lambda record: record.id or "",
        )
        payload = {
            "origin": basename,
            "api_version": api_version,
            "components": [
                record.model_dump(mode="json", exclude=_EXCLUDED_FIELDS, exclude_none=True)
                for record in kept
            ],
        }
        temp_path = path.with_suffix(path.suffix + ".tmp")
        with gzip.open(temp_path, "wt", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2, sort_keys=True, ensure_ascii=False)
            handle.write("\n")
        temp_path.replace(path)
        self._logger.info("Wrote catalog", path=str(path), count=len(kept))
        return path

    def write_icons(self, icons_dir: Path | str, output_dir: Path | str, *, basename: str) -> Path:
        """Bundle every file in *icons_dir* into ``<basename>-icons.tar.gz``."""

        path = icons_path(output_dir, basename)
        ensure_directory(path.parent)
        source = Path(icons_dir)
        files = sorted(item for item in source.iterdir() if item.is_file()) if source.is_dir() else []
        temp_path = path.with_suffix(path.suffix + ".tmp")
        with tarfile.open(temp_path, "w:gz") as archive:
            for item in files:
                archive.add(item, arcname=item.name)
        temp_path.replace(path)
        self._logger.info("Wrote icon bundle", path=str(path), count=len(files))
        return path


__all__ = [
    "Catalog",
    "CatalogError",
    "CatalogWriter",
    "catalog_path",
    "icons_path",
    "read_catalog",
]
