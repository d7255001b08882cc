"""Core domain entities shared by plugins, the pipeline and the writer."""

from __future__ import annotations

from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, Field, PrivateAttr, field_validator

CACHE_ID_KEY = "X-CacheID"
"""Metadata key holding the cache key of the package a record came from."""


class ComponentKind(str, Enum):
    """Kinds of catalog component discovered inside packages."""

    DESKTOP = "desktop"
    FONT = "font"
    ADDON = "addon"
    GENERIC = "generic"
    PLACEHOLDER = "placeholder"


class IconKind(str, Enum):
    STOCK = "stock"
    CACHED = "cached"
    REMOTE = "remote"


class Screenshot(BaseModel):
    """A screenshot reference, optionally carrying a caption."""

    url: str = Field(..., min_length=1)
    caption: str | None = None
    width: int | None = Field(default=None, ge=0)
    height: int | None = Field(default=None, ge=0)
    only_source: bool = False


class Release(BaseModel):
    """A single entry of a package release history."""

    version: str = Field(..., min_length=1)
    timestamp: int = Field(default=0, ge=0)
    description: str | None = None


class Component(BaseModel):
    """Candidate record discovered by an extraction plugin.

    Records are owned by the task that created them until they are handed to
    the shared result set. A record with any ``vetoes`` never reaches the
    catalog; ``requires_appdata`` reasons turn into vetoes once refining ends.
    """

    id: str | None = Field(default=None, description="Component identifier, e.g. ``gimp.desktop``")
    kind: ComponentKind = ComponentKind.GENERIC
    package_name: str | None = Field(
        default=None,
        description="Plain copy of the source package name.",
    )
    name: str | None = None
    comment: str | None = None
    description: str | None = None
    icon: str | None = None
    icon_kind: IconKind = IconKind.STOCK
    categories: List[str] = Field(default_factory=list)
    metadata: Dict[str, str] = Field(default_factory=dict)
    languages: Dict[str, int] = Field(
        default_factory=dict,
        description="Language code mapped to translation percentage.",
    )
    urls: Dict[str, str] = Field(default_factory=dict)
    project_license: str | None = None
    screenshots: List[Screenshot] = Field(default_factory=list)
    releases: List[Release] = Field(default_factory=list)
    aliases: List[str] = Field(
        default_factory=list,
        description="Identifiers of records subsumed into this one by a merge plugin.",
    )
    merged_cache_ids: List[str] = Field(default_factory=list)
    vetoes: List[str] = Field(default_factory=list)
    requires_appdata: List[str] = Field(default_factory=list)

    _resources: Dict[str, bytes] = PrivateAttr(default_factory=dict)

    @field_validator("id", "name", "comment", "icon", mode="before")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = str(value).strip()
        return cleaned or None

    # ------------------------------------------------------------------
    # Vetoes
    # ------------------------------------------------------------------
    def add_veto(self, reason: str) -> None:
        if reason not in self.vetoes:
            self.vetoes.append(reason)

    @property
    def is_vetoed(self) -> bool:
        return bool(self.vetoes)

    # ------------------------------------------------------------------
    # Metadata helpers
    # ------------------------------------------------------------------
    def add_metadata(self, key: str, value: str, *, replace: bool = False) -> None:
        if replace or key not in self.metadata:
            self.metadata[key] = value

    def get_metadata(self, key: str) -> str | None:
        return self.metadata.get(key)

    def add_language(self, code: str, percentage: int = 100) -> None:
        self.languages.setdefault(code, percentage)

    def add_category(self, category: str) -> None:
        if category not in self.categories:
            self.categories.append(category)

    @property
    def cache_id(self) -> str | None:
        return self.metadata.get(CACHE_ID_KEY)

    def cache_keys(self) -> List[str]:
        """Every cache key this record answers for, own key first."""

        keys = [self.cache_id] if self.cache_id else []
        keys.extend(key for key in self.merged_cache_ids if key not in keys)
        return keys

    # ------------------------------------------------------------------
    # Resources (icon blobs), never serialised
    # ------------------------------------------------------------------
    def add_resource(self, filename: str, data: bytes) -> None:
        self._resources[filename] = data

    @property
    def resources(self) -> Dict[str, bytes]:
        return dict(self._resources)

    # ------------------------------------------------------------------
    # Merging
    # ------------------------------------------------------------------
    def subsume(self, donor: "Component") -> None:
        """Fold *donor* into this record.

        The donor's identity becomes an alias; languages, screenshots and
        metadata missing here are copied over without replacing existing
        values.
        """

        for alias in [donor.id, *donor.aliases]:
            if alias and alias != self.id and alias not in self.aliases:
                self.aliases.append(alias)
        for code, percentage in donor.languages.items():
            self.languages.setdefault(code, percentage)
        known_urls = {shot.url for shot in self.screenshots}
        for shot in donor.screenshots:
            if shot.url not in known_urls:
                self.screenshots.append(shot.model_copy())
                known_urls.add(shot.url)
        for key, value in donor.metadata.items():
            if key == CACHE_ID_KEY:
                continue
            self.metadata.setdefault(key, value)
        for key in donor.cache_keys():
            if key != self.cache_id and key not in self.merged_cache_ids:
                self.merged_cache_ids.append(key)


def placeholder_for(package_name: str, cache_id: str) -> Component:
    """Build the empty marker emitted for packages that yielded no records."""

    return Component(
        id=package_name,
        kind=ComponentKind.PLACEHOLDER,
        package_name=package_name,
        metadata={CACHE_ID_KEY: cache_id},
    )


__all__ = [
    "CACHE_ID_KEY",
    "ComponentKind",
    "IconKind",
    "Screenshot",
    "Release",
    "Component",
    "placeholder_for",
]
