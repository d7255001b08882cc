"""Load hand-written components from an extra components directory."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List

import yaml
from pydantic import ValidationError

from appstream_builder.entities.core import Component
from appstream_builder.utils.logging import get_logger

_LOGGER = get_logger(module=__name__)

EXTRA_SUFFIXES = (".yaml", ".yml", ".json")


def _load_document(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        if path.suffix == ".json":
            return json.load(handle)
        return yaml.safe_load(handle)


def load_extra_components(directory: Path | str | None) -> List[Component]:
    """Return every component described in *directory*, sorted by file name.

    A file holds either one component mapping or a list of them. Files
    that cannot be parsed are logged and skipped.
    """

    if directory is None:
        return []
    root = Path(directory)
    if not root.is_dir():
        _LOGGER.warning("Extra components directory does not exist", path=str(root))
        return []

    components: List[Component] = []
    for path in sorted(root.iterdir()):
        if path.suffix not in EXTRA_SUFFIXES or not path.is_file():
            continue
        try:
            payload = _load_document(path)
            items = payload if isinstance(payload, list) else [payload]
            loaded = [Component.model_validate(item) for item in items if item]
        except (OSError, ValueError, yaml.YAMLError, ValidationError) as exc:
            _LOGGER.warning("Skipping extra component file {}: {}", path.name, exc)
            continue
        components.extend(component for component in loaded if component.id)
    if components:
        _LOGGER.info("Loaded extra components", count=len(components), path=str(root))
    return components


__all__ = ["load_extra_components", "EXTRA_SUFFIXES"]
