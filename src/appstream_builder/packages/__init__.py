"""Package readers and the format-independent package model."""

from .base import (
    ArchiveEntry,
    CorruptHeader,
    EntryType,
    ExtractError,
    FormatError,
    LogLevel,
    Package,
    PackageError,
    PackageLog,
    UnsupportedFormat,
    is_safe_name,
    normalize_member_path,
)
from .deb import DebPackage
from .loader import READERS, open_package
from .rpm import RpmPackage
from .version import compare_evr, compare_versions, split_deb_version

__all__ = [
    "ArchiveEntry",
    "CorruptHeader",
    "DebPackage",
    "EntryType",
    "ExtractError",
    "FormatError",
    "LogLevel",
    "Package",
    "PackageError",
    "PackageLog",
    "READERS",
    "RpmPackage",
    "UnsupportedFormat",
    "compare_evr",
    "compare_versions",
    "is_safe_name",
    "normalize_member_path",
    "open_package",
    "split_deb_version",
]
