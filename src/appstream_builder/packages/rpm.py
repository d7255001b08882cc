"""Reader for RPM packages: lead, header tag store and cpio payload."""

from __future__ import annotations

import bz2
import gzip
import lzma
import stat
import struct
import zlib
from pathlib import Path
from typing import Dict, Iterator, List, Tuple

from appstream_builder.entities.core import Release

from .base import ArchiveEntry, CorruptHeader, EntryType, ExtractError, Package, UnsupportedFormat

_LEAD_SIZE = 96
_LEAD_MAGIC = b"\xed\xab\xee\xdb"
_HEADER_MAGIC = b"\x8e\xad\xe8\x01"
_CPIO_NEWC = (b"070701", b"070702")
_CPIO_TRAILER = "TRAILER!!!"

TAG_NAME = 1000
TAG_VERSION = 1001
TAG_RELEASE = 1002
TAG_EPOCH = 1003
TAG_LICENSE = 1014
TAG_URL = 1020
TAG_ARCH = 1022
TAG_CHANGELOGTIME = 1080
TAG_CHANGELOGNAME = 1081
TAG_CHANGELOGTEXT = 1082
TAG_DIRINDEXES = 1116
TAG_BASENAMES = 1117
TAG_DIRNAMES = 1118
TAG_PAYLOADCOMPRESSOR = 1125

_TYPE_INT16 = 3
_TYPE_INT32 = 4
_TYPE_STRING = 6
_TYPE_STRING_ARRAY = 8
_TYPE_I18NSTRING = 9


def _align(offset: int, boundary: int) -> int:
    return (offset + boundary - 1) // boundary * boundary


def _read_strings(store: bytes, offset: int, count: int) -> List[str]:
    values = []
    for _ in range(count):
        end = store.index(b"\x00", offset)
        values.append(store[offset:end].decode("utf-8", "replace"))
        offset = end + 1
    return values


def parse_header(blob: bytes, offset: int) -> Tuple[Dict[int, object], int]:
    """Parse a header structure at *offset*; return tags and the end offset."""

    if blob[offset : offset + 4] != _HEADER_MAGIC:
        raise CorruptHeader("bad header magic")
    try:
        count, size = struct.unpack(">II", blob[offset + 8 : offset + 16])
    except struct.error as exc:
        raise CorruptHeader("truncated header preamble") from exc
    index_start = offset + 16
    store_start = index_start + count * 16
    store = blob[store_start : store_start + size]
    if len(store) != size:
        raise CorruptHeader("truncated header data store")

    tags: Dict[int, object] = {}
    for position in range(count):
        tag, kind, data_offset, data_count = struct.unpack(
            ">iiii", blob[index_start + position * 16 : index_start + (position + 1) * 16]
        )
        try:
            if kind == _TYPE_STRING:
                tags[tag] = _read_strings(store, data_offset, 1)[0]
            elif kind in (_TYPE_STRING_ARRAY, _TYPE_I18NSTRING):
                tags[tag] = _read_strings(store, data_offset, data_count)
            elif kind == _TYPE_INT32:
                tags[tag] = list(struct.unpack(f">{data_count}i", store[data_offset : data_offset + 4 * data_count]))
            elif kind == _TYPE_INT16:
                tags[tag] = list(struct.unpack(f">{data_count}h", store[data_offset : data_offset + 2 * data_count]))
        except (ValueError, struct.error) as exc:
            raise CorruptHeader(f"unreadable header tag {tag}") from exc
    return tags, store_start + size


def _first(value: object) -> object:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _decompress(payload: bytes, compressor: str) -> bytes:
    try:
        if compressor in ("gzip", ""):
            return gzip.decompress(payload) if payload[:2] == b"\x1f\x8b" else payload
        if compressor == "bzip2":
            return bz2.decompress(payload)
        if compressor in ("xz", "lzma"):
            return lzma.decompress(payload)
    except (OSError, EOFError, zlib.error, lzma.LZMAError) as exc:
        raise ExtractError(f"cannot decompress payload: {exc}") from exc
    raise UnsupportedFormat(f"payload compressor {compressor} is not supported")


def iter_cpio(payload: bytes) -> Iterator[Tuple[str, int, int, int, bytes]]:
    """Yield ``(name, mode, inode, nlink, data)`` for each ``newc`` cpio member."""

    offset = 0
    while offset + 110 <= len(payload):
        header = payload[offset : offset + 110]
        if header[:6] not in _CPIO_NEWC:
            raise ExtractError(f"bad cpio magic at offset {offset}")
        try:
            fields = [int(header[6 + i * 8 : 14 + i * 8], 16) for i in range(13)]
        except ValueError as exc:
            raise ExtractError(f"bad cpio header at offset {offset}") from exc
        inode, mode, nlink = fields[0], fields[1], fields[4]
        filesize, namesize = fields[6], fields[11]
        name_start = offset + 110
        name = payload[name_start : name_start + namesize - 1].decode("utf-8", "replace")
        data_start = _align(name_start + namesize, 4)
        data = payload[data_start : data_start + filesize]
        offset = _align(data_start + filesize, 4)
        if name == _CPIO_TRAILER:
            return
        yield name, mode, inode, nlink, data


class RpmPackage(Package):
    """A ``.rpm`` package."""

    suffix = ".rpm"

    def __init__(self, filename: Path | str) -> None:
        super().__init__(filename)
        self._tags: Dict[int, object] = {}
        self._payload_offset = 0

    def _read_header(self) -> None:
        try:
            blob = self.filename.read_bytes()
        except OSError as exc:
            raise CorruptHeader(f"Failed to read package {self.filename}: {exc}") from exc
        if len(blob) < _LEAD_SIZE or blob[:4] != _LEAD_MAGIC:
            raise CorruptHeader(f"{self.basename} is not an RPM package")
        _, signature_end = parse_header(blob, _LEAD_SIZE)
        self._tags, self._payload_offset = parse_header(blob, _align(signature_end, 8))

        self.name = _first(self._tags.get(TAG_NAME))
        self.version = _first(self._tags.get(TAG_VERSION))
        self.release = _first(self._tags.get(TAG_RELEASE))
        self.epoch = int(_first(self._tags.get(TAG_EPOCH)) or 0)
        self.arch = _first(self._tags.get(TAG_ARCH))
        self.url = _first(self._tags.get(TAG_URL))
        self.license = _first(self._tags.get(TAG_LICENSE))
        self.releases = self._read_changelog()

    def _read_changelog(self) -> List[Release]:
        times = self._tags.get(TAG_CHANGELOGTIME) or []
        names = self._tags.get(TAG_CHANGELOGNAME) or []
        releases: List[Release] = []
        seen: set[str] = set()
        for timestamp, author in zip(times, names):
            # "Jane Doe <jane@example.com> - 1.2-3"
            if " - " not in author:
                continue
            version = author.rsplit(" - ", 1)[1].strip().split("-")[0]
            if not version or version in seen:
                continue
            seen.add(version)
            releases.append(Release(version=version, timestamp=max(int(timestamp), 0)))
        return releases

    def _read_filelist(self) -> List[str]:
        dirnames = self._tags.get(TAG_DIRNAMES) or []
        basenames = self._tags.get(TAG_BASENAMES) or []
        dirindexes = self._tags.get(TAG_DIRINDEXES) or []
        files = []
        for basename, index in zip(basenames, dirindexes):
            if not 0 <= index < len(dirnames):
                raise CorruptHeader(f"{self.basename} has an invalid file list")
            files.append(dirnames[index] + basename)
        return files

    def _iter_entries(self) -> Iterator[ArchiveEntry]:
        blob = self.filename.read_bytes()
        compressor = str(_first(self._tags.get(TAG_PAYLOADCOMPRESSOR)) or "gzip")
        payload = _decompress(blob[self._payload_offset :], compressor)

        # newc stores hardlinked data only on the last member of each set
        pending: Dict[int, List[str]] = {}
        for name, mode, inode, nlink, data in iter_cpio(payload):
            if stat.S_ISDIR(mode):
                yield ArchiveEntry(name, EntryType.DIRECTORY, mode=stat.S_IMODE(mode))
            elif stat.S_ISLNK(mode):
                yield ArchiveEntry(name, EntryType.SYMLINK, linkname=data.decode("utf-8", "replace"))
            elif stat.S_ISREG(mode):
                if nlink > 1 and not data:
                    pending.setdefault(inode, []).append(name)
                    continue
                yield ArchiveEntry(name, EntryType.FILE, data=data, mode=stat.S_IMODE(mode))
                for other in pending.pop(inode, []):
                    yield ArchiveEntry(other, EntryType.HARDLINK, linkname=name)
        for names in pending.values():
            for name in names:
                yield ArchiveEntry(name, EntryType.FILE, mode=0o644)


__all__ = ["RpmPackage", "parse_header", "iter_cpio"]
