"""Domain entities for the catalog builder."""

from .core import (
    CACHE_ID_KEY,
    Component,
    ComponentKind,
    IconKind,
    Release,
    Screenshot,
    placeholder_for,
)

__all__ = [
    "CACHE_ID_KEY",
    "Component",
    "ComponentKind",
    "IconKind",
    "Release",
    "Screenshot",
    "placeholder_for",
]
