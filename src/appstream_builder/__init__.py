"""Top-level package for the AppStream catalog builder."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("appstream-builder")
except PackageNotFoundError:  # pragma: no cover - running from a source tree
    __version__ = "0.1.0"

from .config.settings import Settings, get_settings
from .entities import Component, ComponentKind, Release, Screenshot

__all__ = [
    "__version__",
    "Settings",
    "get_settings",
    "Component",
    "ComponentKind",
    "Release",
    "Screenshot",
]
