"""Pick a package reader from the file name."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Type

from .base import Package, UnsupportedFormat
from .deb import DebPackage
from .rpm import RpmPackage

READERS: Dict[str, Type[Package]] = {
    DebPackage.suffix: DebPackage,
    RpmPackage.suffix: RpmPackage,
}


def open_package(path: Path | str) -> Package:
    """Open *path* with the reader registered for its suffix."""

    path = Path(path)
    reader = READERS.get(path.suffix.lower())
    if reader is None:
        raise UnsupportedFormat(f"No package reader for {path.name}")
    return reader(path).open()


__all__ = ["READERS", "open_package"]
