"""AppData refine plugin.

Looks for ``/usr/share/appdata/<id>.appdata.xml`` (or the ``metainfo``
equivalent) in the workspace and copies description, screenshots, URLs,
license and releases onto the matching record.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path, PurePosixPath
from typing import Iterable, List

from appstream_builder.entities.core import Component, Release, Screenshot
from appstream_builder.packages.base import LogLevel, Package

from .base import Capability, Plugin, PluginError

APPDATA_DIRS = ("usr/share/appdata", "usr/share/metainfo")
APPDATA_SUFFIXES = (".appdata.xml", ".metainfo.xml")


def candidate_names(record_id: str) -> List[str]:
    """File names an AppData document for *record_id* may use."""

    stems = [record_id]
    stem = PurePosixPath(record_id).stem
    if stem != record_id:
        stems.append(stem)
    return [s + suffix for s in stems for suffix in APPDATA_SUFFIXES]


def _text(element: ET.Element | None) -> str | None:
    if element is None or element.text is None:
        return None
    return " ".join(element.text.split()) or None


def _description(element: ET.Element | None) -> str | None:
    if element is None:
        return None
    paragraphs: List[str] = []
    for child in element:
        if child.tag in ("ul", "ol"):
            paragraphs.extend(f"* {_text(item)}" for item in child if _text(item))
        elif _text(child):
            paragraphs.append(_text(child))
    return "\n".join(paragraphs) or _text(element)


def _untranslated(elements: Iterable[ET.Element]) -> ET.Element | None:
    for element in elements:
        if "{http://www.w3.org/XML/1998/namespace}lang" not in element.attrib:
            return element
    return None


class AppDataPlugin(Plugin):
    name = "appdata"
    globs = ("/usr/share/appdata/*.xml", "/usr/share/metainfo/*.xml")
    capabilities = frozenset({Capability.REFINE})

    def find_document(self, record: Component, workspace: Path) -> Path | None:
        for directory in APPDATA_DIRS:
            for name in candidate_names(record.id or ""):
                candidate = workspace / directory / name
                if candidate.is_file():
                    return candidate
        return None

    def refine(self, package: Package, record: Component, workspace: Path) -> None:
        document = self.find_document(record, workspace)
        if document is None:
            return
        try:
            root = ET.parse(document).getroot()
        except (ET.ParseError, OSError) as exc:
            raise PluginError(f"Failed to parse {document.name}: {exc}") from exc
        if root.tag not in ("component", "application"):
            raise PluginError(f"{document.name} has unexpected root <{root.tag}>")

        package.log.log(LogLevel.DEBUG, "Using %s for %s", document.name, record.id)
        # Required-field vetoes are set during validation, so name and
        # summary only fill display text here and never lift a veto.
        name = _text(_untranslated(root.findall("name")))
        if name and not record.name:
            record.name = name
        summary = _text(_untranslated(root.findall("summary")))
        if summary and not record.comment:
            record.comment = summary
        description = _description(_untranslated(root.findall("description")))
        if description:
            record.description = description
        license_ = _text(root.find("project_license"))
        if license_:
            record.project_license = license_
        for url in root.findall("url"):
            if _text(url):
                record.urls.setdefault(url.get("type", "homepage"), _text(url))
        for shot in root.iterfind("screenshots/screenshot"):
            image = _text(shot.find("image"))
            if image and image not in {existing.url for existing in record.screenshots}:
                record.screenshots.append(Screenshot(url=image, caption=_text(shot.find("caption"))))
        releases = []
        for release in root.iterfind("releases/release"):
            version = release.get("version")
            if version:
                releases.append(Release(version=version, timestamp=int(release.get("timestamp", "0") or 0)))
        if releases:
            record.releases = releases
        record.requires_appdata.clear()


__all__ = ["AppDataPlugin", "candidate_names", "APPDATA_DIRS"]
