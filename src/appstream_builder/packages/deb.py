"""Reader for Debian binary packages (``ar`` container with tar members)."""

from __future__ import annotations

import io
import lzma
import tarfile
import zlib
from pathlib import Path
from typing import Dict, Iterator, List

from .base import (
    ArchiveEntry,
    CorruptHeader,
    EntryType,
    ExtractError,
    FormatError,
    Package,
    normalize_member_path,
)
from .version import split_deb_version

_AR_MAGIC = b"!<arch>\n"
_AR_HEADER_SIZE = 60
_TAR_ERRORS = (tarfile.TarError, EOFError, zlib.error, lzma.LZMAError)


def read_ar_members(blob: bytes) -> Dict[str, bytes]:
    """Return ``name -> payload`` for every member of an ``ar`` archive."""

    if not blob.startswith(_AR_MAGIC):
        raise CorruptHeader("not an ar archive")
    members: Dict[str, bytes] = {}
    offset = len(_AR_MAGIC)
    while offset < len(blob):
        header = blob[offset : offset + _AR_HEADER_SIZE]
        if len(header) < _AR_HEADER_SIZE or header[58:60] != b"`\n":
            raise CorruptHeader("truncated ar member header")
        name = header[0:16].decode("ascii", "replace").strip().rstrip("/")
        try:
            size = int(header[48:58].decode("ascii").strip())
        except ValueError as exc:
            raise CorruptHeader("invalid ar member size") from exc
        start = offset + _AR_HEADER_SIZE
        payload = blob[start : start + size]
        if len(payload) != size:
            raise CorruptHeader(f"truncated ar member {name}")
        members[name] = payload
        offset = start + size + (size % 2)
    return members


def parse_control(text: str) -> Dict[str, str]:
    """Parse an RFC 822 style ``control`` stanza; continuation lines are joined."""

    fields: Dict[str, str] = {}
    current: str | None = None
    for line in text.splitlines():
        if not line.strip():
            continue
        if line[0] in " \t" and current is not None:
            fields[current] += "\n" + line.strip()
            continue
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        current = key.strip()
        fields[current] = value.strip()
    return fields


def _open_tar(payload: bytes, member: str) -> tarfile.TarFile:
    try:
        return tarfile.open(fileobj=io.BytesIO(payload), mode="r:*")
    except _TAR_ERRORS + (OSError,) as exc:
        raise FormatError(f"cannot read {member}: {exc}") from exc


class DebPackage(Package):
    """A ``.deb`` package."""

    suffix = ".deb"

    def __init__(self, filename: Path | str) -> None:
        super().__init__(filename)
        self._control: Dict[str, str] = {}

    def _load_members(self) -> Dict[str, bytes]:
        try:
            blob = self.filename.read_bytes()
        except OSError as exc:
            raise FormatError(f"Failed to read package {self.filename}: {exc}") from exc
        return read_ar_members(blob)

    def _member(self, prefix: str) -> tuple[str, bytes]:
        for name, payload in self._load_members().items():
            if name.startswith(prefix):
                return name, payload
        raise CorruptHeader(f"{self.basename} has no {prefix}* member")

    def _read_header(self) -> None:
        name, payload = self._member("control.tar")
        raw_control = None
        with _open_tar(payload, name) as archive:
            try:
                for info in archive.getmembers():
                    if info.isfile() and info.name.lstrip("./") == "control":
                        handle = archive.extractfile(info)
                        raw_control = handle.read() if handle is not None else None
                        break
            except _TAR_ERRORS as exc:
                raise CorruptHeader(f"{self.basename}: unreadable {name}: {exc}") from exc
        if raw_control is None:
            raise CorruptHeader(f"{self.basename} has no control file")
        self._control = parse_control(raw_control.decode("utf-8", "replace"))

        self.name = self._control.get("Package")
        raw_version = self._control.get("Version")
        if not raw_version:
            raise CorruptHeader(f"{self.basename} has no Version field")
        self.epoch, self.version, self.release = split_deb_version(raw_version)
        self.arch = self._control.get("Architecture")
        self.url = self._control.get("Homepage")
        self.license = self._control.get("License")

    def _read_filelist(self) -> List[str]:
        return [
            normalize_member_path(entry.path)
            for entry in self._iter_entries(with_data=False)
            if entry.type is not EntryType.DIRECTORY
        ]

    def _iter_entries(self, with_data: bool = True) -> Iterator[ArchiveEntry]:
        name, payload = self._member("data.tar")
        with _open_tar(payload, name) as archive:
            try:
                yield from self._entries_from(archive, with_data)
            except _TAR_ERRORS as exc:
                raise ExtractError(f"{self.basename}: unreadable {name}: {exc}") from exc

    @staticmethod
    def _entries_from(archive: tarfile.TarFile, with_data: bool) -> Iterator[ArchiveEntry]:
        for info in archive:
            if info.isdir():
                yield ArchiveEntry(info.name, EntryType.DIRECTORY, mode=info.mode)
            elif info.issym():
                yield ArchiveEntry(info.name, EntryType.SYMLINK, linkname=info.linkname)
            elif info.islnk():
                yield ArchiveEntry(info.name, EntryType.HARDLINK, linkname=info.linkname)
            elif info.isfile():
                data = b""
                if with_data and info.size:
                    handle = archive.extractfile(info)
                    data = handle.read() if handle is not None else b""
                yield ArchiveEntry(info.name, EntryType.FILE, data=data, mode=info.mode)


__all__ = ["DebPackage", "read_ar_members", "parse_control"]
