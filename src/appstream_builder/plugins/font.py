"""Font plugin: one record per font file, merged per family."""

from __future__ import annotations

import struct
from pathlib import Path, PurePosixPath
from typing import Dict, List

from appstream_builder.entities.core import Component, ComponentKind, IconKind
from appstream_builder.packages.base import LogLevel, Package
from appstream_builder.utils.logging import get_logger

from .base import Capability, Plugin, PluginError

_LOGGER = get_logger(module=__name__)

NAME_ID_FAMILY = 1
NAME_ID_SUBFAMILY = 2
NAME_ID_FULL_NAME = 4
NAME_ID_PREFERRED_FAMILY = 16

_NAME_ID_TO_METADATA = {
    NAME_ID_FAMILY: "FontFamily",
    NAME_ID_SUBFAMILY: "FontSubFamily",
    NAME_ID_FULL_NAME: "FontFullName",
    NAME_ID_PREFERRED_FAMILY: "FontParent",
}

_SFNT_VERSIONS = (b"\x00\x01\x00\x00", b"OTTO", b"true", b"typ1")
_WINDOWS_ENGLISH = 0x409

# Each keyword found in a font id makes it a less likely family representative.
STYLE_KEYWORDS = (
    "It",
    "Bold",
    "Semibold",
    "ExtraLight",
    "Lig",
    "Medium",
    "Bla",
    "Hai",
    "Keyboard",
    "Kufi",
    "Tamil",
    "Hebrew",
    "Arabic",
    "Fallback",
)

SAMPLE_TEXT = {"en": "How quickly daft jumping zebras vex."}
ICON_TEXT = {"en": "Aa"}


def read_name_table(data: bytes) -> Dict[int, str]:
    """Return ``name id -> string`` from an sfnt ``name`` table.

    Windows English records win over Macintosh Roman ones. Files that are
    not sfnt containers yield an empty mapping.
    """

    if len(data) < 12 or data[:4] not in _SFNT_VERSIONS:
        return {}
    try:
        (num_tables,) = struct.unpack(">H", data[4:6])
        table_offset = None
        for index in range(num_tables):
            start = 12 + index * 16
            tag, _checksum, offset, _length = struct.unpack(">4sIII", data[start : start + 16])
            if tag == b"name":
                table_offset = offset
                break
        if table_offset is None:
            return {}
        _format, count, string_offset = struct.unpack(
            ">HHH", data[table_offset : table_offset + 6]
        )
        storage = table_offset + string_offset
        names: Dict[int, str] = {}
        mac_names: Dict[int, str] = {}
        for index in range(count):
            start = table_offset + 6 + index * 12
            platform, _encoding, language, name_id, length, offset = struct.unpack(
                ">HHHHHH", data[start : start + 12]
            )
            raw = data[storage + offset : storage + offset + length]
            if platform == 3 and language == _WINDOWS_ENGLISH:
                names.setdefault(name_id, raw.decode("utf-16-be", "replace"))
            elif platform == 1 and language == 0:
                mac_names.setdefault(name_id, raw.decode("latin-1"))
    except struct.error as exc:
        raise PluginError(f"truncated font tables: {exc}") from exc
    for name_id, value in mac_names.items():
        names.setdefault(name_id, value)
    return names


def names_from_filename(filename: str) -> Dict[int, str]:
    """Guess family and style from ``Family-Style.ttf`` file names."""

    stem = PurePosixPath(filename).stem
    family, _, style = stem.partition("-")
    style = style or "Regular"
    return {
        NAME_ID_FAMILY: family,
        NAME_ID_SUBFAMILY: style,
        NAME_ID_FULL_NAME: f"{family} {style}",
    }


def style_score(font_id: str) -> int:
    return sum(1 for keyword in STYLE_KEYWORDS if keyword in font_id)


class FontPlugin(Plugin):
    name = "font"
    globs = ("/usr/share/fonts/*/*.otf", "/usr/share/fonts/*/*.ttf")
    capabilities = frozenset({Capability.EXTRACT, Capability.MERGE})
    merge_key_names = ("FontFamily", "FontParent")

    def extract(self, package: Package, workspace: Path) -> List[Component]:
        records = []
        for filename in self.matching_files(package):
            records.append(self._process_file(package, filename, workspace))
        if not records:
            raise PluginError(f"nothing interesting in {package.basename}")
        _LOGGER.debug("Extracted font records", package=package.name, count=len(records))
        return records

    def _process_file(self, package: Package, filename: str, workspace: Path) -> Component:
        path = workspace / filename.lstrip("/")
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise PluginError(f"Failed to read font {filename}: {exc}") from exc

        names = read_name_table(data)
        if NAME_ID_FAMILY not in names:
            package.log.log(LogLevel.DEBUG, "No name table in %s, using file name", filename)
            for name_id, value in names_from_filename(filename).items():
                names.setdefault(name_id, value)

        family = names[NAME_ID_FAMILY]
        style = names.get(NAME_ID_SUBFAMILY, "Regular")
        record = Component(
            id=PurePosixPath(filename).name,
            kind=ComponentKind.FONT,
            package_name=package.name,
            name=family,
            comment=f"A {style} font from {family}",
            icon="font-x-generic",
            icon_kind=IconKind.STOCK,
            categories=["Addons", "Fonts"],
        )
        record.add_language("en")
        for name_id, key in _NAME_ID_TO_METADATA.items():
            if names.get(name_id):
                record.add_metadata(key, names[name_id])
        self._fix_metadata(package, record)
        return record

    @staticmethod
    def _fix_metadata(package: Package, record: Component) -> None:
        for lang, text in SAMPLE_TEXT.items():
            if lang in record.languages:
                record.add_metadata("FontSampleText", text)
                break
        for lang, text in ICON_TEXT.items():
            if lang in record.languages:
                record.add_metadata("FontIconText", text)
                break
        if record.get_metadata("FontSampleText") is None:
            package.log.log(
                LogLevel.WARNING,
                "No FontSampleText for langs: %s",
                ", ".join(record.languages),
            )

    def score(self, record: Component) -> int:
        return style_score(record.id or "")


__all__ = [
    "FontPlugin",
    "STYLE_KEYWORDS",
    "read_name_table",
    "names_from_filename",
    "style_score",
]
