"""Shared fixtures: on-the-fly Deb, RPM and font builders plus settings."""

from __future__ import annotations

import gzip
import io
import struct
import tarfile
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import pytest

from appstream_builder.config.settings import Settings

# ----------------------------------------------------------------------
# Deb
# ----------------------------------------------------------------------


def _ar_member(name: str, payload: bytes) -> bytes:
    header = (
        f"{name:<16}"
        f"{0:<12}"
        f"{0:<6}"
        f"{0:<6}"
        f"{100644:<8}"
        f"{len(payload):<10}"
    ).encode("ascii") + b"`\n"
    padding = b"\n" if len(payload) % 2 else b""
    return header + payload + padding


def _tar_gz(entries: Iterable[Tuple[tarfile.TarInfo, Optional[bytes]]]) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as archive:
        for info, data in entries:
            if data is not None:
                info.size = len(data)
                archive.addfile(info, io.BytesIO(data))
            else:
                archive.addfile(info)
    return buffer.getvalue()


def tar_file(name: str, data: bytes) -> Tuple[tarfile.TarInfo, bytes]:
    info = tarfile.TarInfo(name)
    info.mode = 0o644
    return info, data


def tar_dir(name: str) -> Tuple[tarfile.TarInfo, None]:
    info = tarfile.TarInfo(name)
    info.type = tarfile.DIRTYPE
    info.mode = 0o755
    return info, None


def tar_symlink(name: str, target: str) -> Tuple[tarfile.TarInfo, None]:
    info = tarfile.TarInfo(name)
    info.type = tarfile.SYMTYPE
    info.linkname = target
    return info, None


def tar_hardlink(name: str, target: str) -> Tuple[tarfile.TarInfo, None]:
    info = tarfile.TarInfo(name)
    info.type = tarfile.LNKTYPE
    info.linkname = target
    return info, None


def build_deb(
    directory: Path,
    name: str,
    version: str,
    files: Optional[Dict[str, bytes]] = None,
    *,
    entries: Sequence[Tuple[tarfile.TarInfo, Optional[bytes]]] = (),
    homepage: Optional[str] = None,
    arch: str = "amd64",
) -> Path:
    """Write ``<name>_<version>_<arch>.deb`` and return its path."""

    control_lines = [f"Package: {name}", f"Version: {version}", f"Architecture: {arch}"]
    if homepage:
        control_lines.append(f"Homepage: {homepage}")
    control_lines.append("Description: test package\n long description line")
    control = _tar_gz([tar_file("./control", ("\n".join(control_lines) + "\n").encode())])

    data_entries: List[Tuple[tarfile.TarInfo, Optional[bytes]]] = [tar_dir("./")]
    for path, payload in (files or {}).items():
        data_entries.append(tar_file("./" + path.lstrip("/"), payload))
    data_entries.extend(entries)
    data = _tar_gz(data_entries)

    blob = b"!<arch>\n"
    blob += _ar_member("debian-binary", b"2.0\n")
    blob += _ar_member("control.tar.gz", control)
    blob += _ar_member("data.tar.gz", data)
    target = directory / f"{name}_{version.replace(':', '%3a')}_{arch}.deb"
    target.write_bytes(blob)
    return target


# ----------------------------------------------------------------------
# RPM
# ----------------------------------------------------------------------

_RPM_STRING = 6
_RPM_INT32 = 4
_RPM_STRING_ARRAY = 8


def _rpm_header(entries: Sequence[Tuple[int, int, object]]) -> bytes:
    index = b""
    store = b""
    for tag, kind, value in entries:
        if kind == _RPM_STRING:
            data, count = str(value).encode() + b"\x00", 1
        elif kind == _RPM_STRING_ARRAY:
            items = list(value)  # type: ignore[arg-type]
            data, count = b"".join(item.encode() + b"\x00" for item in items), len(items)
        else:
            numbers = list(value)  # type: ignore[arg-type]
            data, count = struct.pack(f">{len(numbers)}i", *numbers), len(numbers)
        index += struct.pack(">iiii", tag, kind, len(store), count)
        store += data
    return b"\x8e\xad\xe8\x01" + b"\x00" * 4 + struct.pack(">II", len(entries), len(store)) + index + store


def _cpio_entry(name: str, data: bytes = b"", *, mode: int = 0o100644, inode: int = 1, nlink: int = 1) -> bytes:
    fields = [inode, mode, 0, 0, nlink, 0, len(data), 0, 0, 0, 0, len(name) + 1, 0]
    out = b"070701" + b"".join(f"{value:08X}".encode() for value in fields)
    out += name.encode() + b"\x00"
    out += b"\x00" * (-len(out) % 4)
    out += data
    out += b"\x00" * (-len(out) % 4)
    return out


def build_rpm(
    directory: Path,
    name: str,
    version: str,
    release: str = "1",
    files: Optional[Dict[str, bytes]] = None,
    *,
    epoch: Optional[int] = None,
    symlinks: Optional[Dict[str, str]] = None,
    hardlinks: Optional[Dict[str, str]] = None,
    url: Optional[str] = None,
    license: Optional[str] = None,
    changelog: Sequence[Tuple[int, str]] = (),
    arch: str = "noarch",
) -> Path:
    """Write a minimal ``<name>-<version>-<release>.<arch>.rpm``.

    *hardlinks* maps an extra path to an existing path of *files*; the
    pair is stored as one hardlink set with the data on the last member.
    """

    files = dict(files or {})
    symlinks = dict(symlinks or {})
    hardlinks = dict(hardlinks or {})
    all_paths = sorted(set(files) | set(symlinks) | set(hardlinks))
    dirnames: List[str] = []
    dirindexes: List[int] = []
    basenames: List[str] = []
    for path in all_paths:
        head, _, tail = path.rpartition("/")
        head += "/"
        if head not in dirnames:
            dirnames.append(head)
        dirindexes.append(dirnames.index(head))
        basenames.append(tail)

    tags: List[Tuple[int, int, object]] = [
        (1000, _RPM_STRING, name),
        (1001, _RPM_STRING, version),
        (1002, _RPM_STRING, release),
        (1022, _RPM_STRING, arch),
        (1125, _RPM_STRING, "gzip"),
    ]
    if epoch is not None:
        tags.append((1003, _RPM_INT32, [epoch]))
    if url:
        tags.append((1020, _RPM_STRING, url))
    if license:
        tags.append((1014, _RPM_STRING, license))
    if changelog:
        tags.append((1080, _RPM_INT32, [stamp for stamp, _ in changelog]))
        tags.append((1081, _RPM_STRING_ARRAY, [author for _, author in changelog]))
        tags.append((1082, _RPM_STRING_ARRAY, ["- update" for _ in changelog]))
    if all_paths:
        tags.append((1116, _RPM_INT32, dirindexes))
        tags.append((1117, _RPM_STRING_ARRAY, basenames))
        tags.append((1118, _RPM_STRING_ARRAY, dirnames))

    link_sources = {source: target for target, source in hardlinks.items()}
    cpio = b""
    inode = 1
    for path, payload in sorted(files.items()):
        if path in link_sources:
            cpio += _cpio_entry("." + link_sources[path], mode=0o100644, inode=inode, nlink=2)
            cpio += _cpio_entry("." + path, payload, inode=inode, nlink=2)
        else:
            cpio += _cpio_entry("." + path, payload, inode=inode)
        inode += 1
    for path, target in sorted(symlinks.items()):
        cpio += _cpio_entry("." + path, target.encode(), mode=0o120777, inode=inode)
        inode += 1
    cpio += _cpio_entry("TRAILER!!!", inode=0)

    lead = b"\xed\xab\xee\xdb" + b"\x03\x00" + b"\x00" * 90
    signature = _rpm_header([])
    signature += b"\x00" * (-len(signature) % 8)
    blob = lead + signature + _rpm_header(tags) + gzip.compress(cpio)
    target = directory / f"{name}-{version}-{release}.{arch}.rpm"
    target.write_bytes(blob)
    return target


# ----------------------------------------------------------------------
# Fonts
# ----------------------------------------------------------------------


def build_sfnt(names: Dict[int, str]) -> bytes:
    """Return a TrueType file holding only a Windows English ``name`` table."""

    records = b""
    storage = b""
    for name_id, text in names.items():
        raw = text.encode("utf-16-be")
        records += struct.pack(">HHHHHH", 3, 1, 0x409, name_id, len(raw), len(storage))
        storage += raw
    table = struct.pack(">HHH", 0, len(names), 6 + 12 * len(names)) + records + storage
    header = b"\x00\x01\x00\x00" + struct.pack(">HHHH", 1, 16, 0, 0)
    directory = struct.pack(">4sIII", b"name", 0, 12 + 16, len(table))
    return header + directory + table


DESKTOP_ENTRY = b"""[Desktop Entry]
Type=Application
Name=Demo
Name[de]=Demo DE
Comment=A demo application
Icon=demo
Categories=Utility;
Exec=demo %U
"""


@pytest.fixture()
def deb_factory(tmp_path: Path) -> Callable[..., Path]:
    directory = tmp_path / "packages"
    directory.mkdir(exist_ok=True)

    def factory(name: str, version: str, files: Optional[Dict[str, bytes]] = None, **kwargs) -> Path:
        return build_deb(directory, name, version, files, **kwargs)

    return factory


@pytest.fixture()
def rpm_factory(tmp_path: Path) -> Callable[..., Path]:
    directory = tmp_path / "packages"
    directory.mkdir(exist_ok=True)

    def factory(name: str, version: str, release: str = "1", files=None, **kwargs) -> Path:
        return build_rpm(directory, name, version, release, files, **kwargs)

    return factory


@pytest.fixture()
def settings_factory(tmp_path: Path) -> Callable[..., Settings]:
    """Settings rooted in *tmp_path* with optional policy overrides."""

    def factory(**overrides) -> Settings:
        payload = {
            "config_dir": str(tmp_path / "config"),
            "paths": {
                "packages_dir": str(tmp_path / "packages"),
                "temp_dir": str(tmp_path / "tmp"),
                "log_dir": str(tmp_path / "logs"),
                "output_dir": str(tmp_path / "out"),
                "cache_dir": str(tmp_path / "cache"),
            },
        }
        payload.update(overrides)
        return Settings(**payload)

    return factory
