"""Desktop entry plugin."""

from __future__ import annotations

import configparser
import re
from pathlib import Path, PurePosixPath
from typing import List

from appstream_builder.entities.core import Component, ComponentKind, IconKind
from appstream_builder.packages.base import LogLevel, Package

from .base import Capability, Plugin, PluginError

_SECTION = "Desktop Entry"
_LOCALIZED_NAME = re.compile(r"^Name\[(?P<lang>[^\]]+)\]$")

ICON_SEARCH_DIRS = (
    "usr/share/icons/hicolor/64x64/apps",
    "usr/share/icons/hicolor/48x48/apps",
    "usr/share/icons/hicolor/128x128/apps",
    "usr/share/icons/hicolor/256x256/apps",
    "usr/share/icons/hicolor/scalable/apps",
    "usr/share/pixmaps",
)
ICON_EXTENSIONS = (".png", ".svg", ".xpm")


def _is_true(value: str | None) -> bool:
    return (value or "").strip().lower() in ("true", "1")


def find_icon(workspace: Path, icon: str) -> Path | None:
    """Locate *icon* inside *workspace* the way an icon theme lookup would."""

    if icon.startswith("/"):
        candidate = workspace / icon.lstrip("/")
        return candidate if candidate.is_file() else None
    names = [icon] if PurePosixPath(icon).suffix in ICON_EXTENSIONS else []
    names.extend(icon + ext for ext in ICON_EXTENSIONS)
    for directory in ICON_SEARCH_DIRS:
        for name in names:
            candidate = workspace / directory / name
            if candidate.is_file():
                return candidate
    return None


class DesktopPlugin(Plugin):
    name = "desktop"
    globs = ("/usr/share/applications/*.desktop",)
    extra_file_globs = ("/usr/share/icons/hicolor/*/apps/*", "/usr/share/pixmaps/*")
    capabilities = frozenset({Capability.EXTRACT})

    def extract(self, package: Package, workspace: Path) -> List[Component]:
        records = []
        for filename in self.matching_files(package):
            record = self._process_file(package, filename, workspace)
            if record is not None:
                records.append(record)
        return records

    def _process_file(self, package: Package, filename: str, workspace: Path) -> Component | None:
        parser = configparser.ConfigParser(interpolation=None, strict=False)
        parser.optionxform = str
        try:
            with open(workspace / filename.lstrip("/"), encoding="utf-8") as handle:
                parser.read_file(handle, source=filename)
        except (OSError, UnicodeDecodeError, configparser.Error) as exc:
            raise PluginError(f"Failed to parse {filename}: {exc}") from exc
        if not parser.has_section(_SECTION):
            package.log.log(LogLevel.INFO, "%s has no [%s] group", filename, _SECTION)
            return None
        entry = parser[_SECTION]
        if entry.get("Type", "Application") != "Application":
            package.log.log(LogLevel.DEBUG, "%s is not an application", filename)
            return None

        record = Component(
            id=PurePosixPath(filename).name,
            kind=ComponentKind.DESKTOP,
            package_name=package.name,
            name=entry.get("Name"),
            comment=entry.get("Comment"),
        )
        for category in (entry.get("Categories") or "").split(";"):
            if category.strip():
                record.add_category(category.strip())
        if not record.categories:
            record.requires_appdata.append("Has no Categories")
        for key in entry:
            match = _LOCALIZED_NAME.match(key)
            if match:
                record.add_language(match.group("lang"))
        if _is_true(entry.get("NoDisplay")):
            record.add_veto("NoDisplay=true")

        icon = (entry.get("Icon") or "").strip()
        if icon:
            self._add_icon(package, record, workspace, icon)
        return record

    @staticmethod
    def _add_icon(package: Package, record: Component, workspace: Path, icon: str) -> None:
        found = find_icon(workspace, icon)
        if found is None:
            package.log.log(LogLevel.DEBUG, "Icon %s not in package, using stock name", icon)
            record.icon = icon
            record.icon_kind = IconKind.STOCK
            return
        cached_name = f"{PurePosixPath(record.id or icon).stem}{found.suffix}"
        record.add_resource(cached_name, found.read_bytes())
        record.icon = cached_name
        record.icon_kind = IconKind.CACHED


__all__ = ["DesktopPlugin", "find_icon", "ICON_SEARCH_DIRS"]
