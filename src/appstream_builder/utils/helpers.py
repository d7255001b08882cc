"""General-purpose filesystem and matching helpers."""

from __future__ import annotations

import fnmatch
import json
import shutil
from pathlib import Path
from typing import Iterable, Mapping

from .logging import get_logger

_LOGGER = get_logger(module=__name__)


def ensure_directory(path: Path | str) -> Path:
    """Ensure that a directory exists and return the resolved Path."""

    target = Path(path)
    target.mkdir(parents=True, exist_ok=True)
    return target.resolve()


def ensure_empty_directory(path: Path | str) -> Path:
    """Create *path*, removing any previous contents first."""

    target = Path(path)
    if target.exists():
        shutil.rmtree(target)
    return ensure_directory(target)


def remove_tree(path: Path | str) -> None:
    """Recursively delete *path*; a missing directory is not an error."""

    target = Path(path)
    if not target.exists():
        return
    shutil.rmtree(target)


def is_within(root: Path | str, candidate: Path | str) -> bool:
    """Return ``True`` when *candidate* resolves to *root* or somewhere below it."""

    base = Path(root).resolve()
    target = Path(candidate).resolve()
    return target == base or base in target.parents


def serialize_json(data: object, destination: Path | str, *, indent: int = 2) -> Path:
    """Serialize data to JSON with deterministic ordering."""

    dest_path = Path(destination)
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    dest_path.write_text(
        json.dumps(data, indent=indent, sort_keys=True, ensure_ascii=False) + "\n",
        encoding="utf-8",
    )
    _LOGGER.debug("Serialized JSON", path=str(dest_path), size=dest_path.stat().st_size)
    return dest_path


def glob_matches_any(value: str, patterns: Iterable[str]) -> bool:
    """Return ``True`` when *value* matches at least one glob in *patterns*."""

    return any(fnmatch.fnmatchcase(value, pattern) for pattern in patterns)


def glob_value_search(mapping: Mapping[str, str], value: str) -> str | None:
    """Return the value of the first glob key in *mapping* matching *value*."""

    for pattern, result in mapping.items():
        if fnmatch.fnmatchcase(value, pattern):
            return result
    return None


__all__ = [
    "ensure_directory",
    "ensure_empty_directory",
    "remove_tree",
    "is_within",
    "serialize_json",
    "glob_matches_any",
    "glob_value_search",
]
