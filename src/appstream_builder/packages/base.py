"""Package model shared by every archive format.

A :class:`Package` exposes the identity read from the archive header, the
installed file list (computed once and cached) and :meth:`Package.explode`,
which writes the payload under a destination directory. Entry paths and
link targets are rewritten so nothing lands outside that directory.
"""

from __future__ import annotations

import os
import posixpath
import shutil
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Sequence, Tuple

from appstream_builder.entities.core import Release
from appstream_builder.utils.helpers import glob_matches_any, is_within
from appstream_builder.utils.logging import get_logger

from .version import compare_evr


class PackageError(RuntimeError):
    """Base class for package reading and extraction failures."""


class FormatError(PackageError):
    """The package file cannot be understood."""


class CorruptHeader(FormatError):
    """The package header is truncated or malformed."""


class UnsupportedFormat(FormatError):
    """No reader is available for the package file."""


class ExtractError(PackageError):
    """An archive entry could not be written to the workspace."""


class EntryType(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    HARDLINK = "hardlink"


@dataclass
class ArchiveEntry:
    """One payload entry as yielded by a format reader."""

    path: str
    type: EntryType = EntryType.FILE
    data: bytes = b""
    linkname: str | None = None
    mode: int = 0o644


class LogLevel(str, Enum):
    NONE = "NONE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"


class PackageLog:
    """Append-only diagnostic buffer written once per package."""

    def __init__(self, package_name: str) -> None:
        self._name = package_name
        self._entries: List[Tuple[LogLevel, str]] = []
        self._lock = threading.Lock()
        self._flushed = False
        self._logger = get_logger(package=package_name)

    def log(self, level: LogLevel, message: str, *args: object) -> None:
        text = message % args if args else message
        with self._lock:
            self._entries.append((level, text))
        self._logger.debug(text)

    @property
    def entries(self) -> List[Tuple[LogLevel, str]]:
        with self._lock:
            return list(self._entries)

    @property
    def flushed(self) -> bool:
        return self._flushed

    def render(self) -> str:
        lines = []
        for level, text in self.entries:
            if level is LogLevel.NONE:
                lines.append(text)
            else:
                lines.append(f"{level.value}: {text}")
        return "\n".join(lines) + ("\n" if lines else "")

    def flush(self, log_dir: Path | str, *, name: str | None = None) -> Path | None:
        """Write the buffer to ``<log_dir>/<initial>/<name>.log`` once.

        *name* replaces the package name in the file name, e.g. for a
        disabled package that shares its name with the enabled one.
        """

        stem = name or self._name
        initial = (stem[:1] or "_").lower()
        target = Path(log_dir) / initial / f"{stem}.log"
        if not is_safe_name(stem) or not is_within(log_dir, target):
            raise ValueError(f"Log for {stem!r} would be written outside {log_dir}")
        with self._lock:
            if self._flushed:
                return None
            self._flushed = True
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.render(), encoding="utf-8")
        return target


def is_safe_name(name: str) -> bool:
    """Package names become path components, so separators and ``..`` are refused."""

    return not any(token in name for token in ("/", "\\", "..", "\x00"))


def _contained(root: str, candidate: str) -> bool:
    return candidate == root or candidate.startswith(root + os.sep)


def normalize_member_path(name: str) -> str:
    """Rewrite an archive member name to a ``/``-rooted path with no ``..``."""

    cleaned = name.replace("\\", "/")
    return posixpath.normpath("/" + cleaned.lstrip("/"))


class Package(ABC):
    """Abstract package; subclasses read headers and iterate payload entries."""

    suffix: str = ""

    def __init__(self, filename: Path | str) -> None:
        self.filename = Path(filename)
        self.name: str | None = None
        self.epoch: int = 0
        self.version: str | None = None
        self.release: str | None = None
        self.arch: str | None = None
        self.url: str | None = None
        self.license: str | None = None
        self.releases: List[Release] = []
        self.enabled = True
        self._filelist: List[str] | None = None
        self._filelist_lock = threading.Lock()
        self._log: PackageLog | None = None

    # ------------------------------------------------------------------
    # Format hooks
    # ------------------------------------------------------------------
    @abstractmethod
    def _read_header(self) -> None:
        """Populate identity fields; raise :class:`FormatError` on failure."""

    @abstractmethod
    def _read_filelist(self) -> List[str]:
        """Return installed paths as absolute POSIX strings."""

    @abstractmethod
    def _iter_entries(self) -> Iterator[ArchiveEntry]:
        """Yield payload entries in archive order."""

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------
    def open(self) -> "Package":
        if not self.filename.is_file():
            raise FormatError(f"Failed to open package {self.filename}")
        self._read_header()
        if not self.name:
            raise CorruptHeader(f"Package {self.filename} has no name")
        for value in (self.name, self.version, self.release, self.arch):
            if value and not is_safe_name(value):
                raise CorruptHeader(f"Package {self.filename} has an unusable identity field {value!r}")
        return self

    @property
    def basename(self) -> str:
        return self.filename.name

    @property
    def evr(self) -> Tuple[int, str | None, str | None]:
        return (self.epoch, self.version, self.release)

    @property
    def nevr(self) -> str:
        version = self.version or ""
        if self.epoch:
            version = f"{self.epoch}:{version}"
        if self.release:
            return f"{self.name}-{version}-{self.release}"
        return f"{self.name}-{version}"

    @property
    def nevra(self) -> str:
        return f"{self.nevr}.{self.arch}" if self.arch else self.nevr

    def compare(self, other: "Package") -> int:
        """Order by epoch, then version, then release."""

        return compare_evr(self.evr, other.evr)

    @property
    def filelist(self) -> List[str]:
        with self._filelist_lock:
            if self._filelist is None:
                self._filelist = list(self._read_filelist())
            return self._filelist

    @property
    def log(self) -> PackageLog:
        if self._log is None:
            self._log = PackageLog(self.name or self.basename)
        return self._log

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------
    def explode(self, destination: Path | str, globs: Sequence[str] | None = None) -> int:
        """Write the payload under *destination* and return the entry count.

        Every entry is visited. When *globs* is given only entries whose
        rooted path matches one of them are written. Entries that would
        resolve outside *destination* are skipped and noted in the package
        log.
        """

        root = Path(destination)
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ExtractError(f"Cannot create {root}: {exc}") from exc
        real_root = os.path.realpath(root)

        seen = 0
        try:
            for entry in self._iter_entries():
                seen += 1
                rooted = normalize_member_path(entry.path)
                if rooted == "/":
                    continue
                if globs is not None and entry.type is not EntryType.DIRECTORY:
                    if not glob_matches_any(rooted, globs):
                        continue
                self._write_entry(real_root, rooted, entry)
        except PackageError:
            raise
        except OSError as exc:
            raise ExtractError(f"Cannot extract {self.basename}: {exc}") from exc
        return seen

    def _write_entry(self, real_root: str, rooted: str, entry: ArchiveEntry) -> None:
        joined = os.path.join(real_root, rooted.lstrip("/"))
        real_parent = os.path.realpath(os.path.dirname(joined))
        if not _contained(real_root, real_parent):
            self.log.log(LogLevel.WARNING, "Skipping %s: resolves outside workspace", entry.path)
            return
        target = os.path.join(real_parent, os.path.basename(joined))
        os.makedirs(real_parent, exist_ok=True)

        if entry.type is EntryType.DIRECTORY:
            if os.path.islink(target):
                os.unlink(target)
            os.makedirs(target, exist_ok=True)
            return

        if os.path.islink(target) or os.path.isfile(target):
            os.unlink(target)

        if entry.type is EntryType.SYMLINK:
            resolved = self._resolve_link(rooted, entry.linkname or "")
            absolute = os.path.join(real_root, resolved.lstrip("/"))
            os.symlink(os.path.relpath(absolute, real_parent), target)
            return

        if entry.type is EntryType.HARDLINK:
            source_rooted = normalize_member_path(entry.linkname or "")
            source = os.path.realpath(os.path.join(real_root, source_rooted.lstrip("/")))
            if not _contained(real_root, source) or not os.path.isfile(source):
                self.log.log(
                    LogLevel.WARNING,
                    "Skipping hardlink %s -> %s: target not in workspace",
                    entry.path,
                    entry.linkname,
                )
                return
            shutil.copyfile(source, target)
            return

        with open(target, "wb") as handle:
            handle.write(entry.data)

    @staticmethod
    def _resolve_link(rooted: str, linkname: str) -> str:
        """Resolve a link target lexically against the tree root."""

        if linkname.startswith("/"):
            return normalize_member_path(linkname)
        return normalize_member_path(posixpath.join(posixpath.dirname(rooted), linkname))

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"<{type(self).__name__} {self.nevra}>"


__all__ = [
    "PackageError",
    "FormatError",
    "CorruptHeader",
    "UnsupportedFormat",
    "ExtractError",
    "EntryType",
    "ArchiveEntry",
    "LogLevel",
    "PackageLog",
    "Package",
    "normalize_member_path",
    "is_safe_name",
]
