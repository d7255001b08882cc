"""Tests for the Deb and RPM readers and safe extraction."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from appstream_builder.packages import (
    CorruptHeader,
    DebPackage,
    ExtractError,
    LogLevel,
    RpmPackage,
    UnsupportedFormat,
    open_package,
)
from appstream_builder.packages.base import PackageLog, normalize_member_path
from appstream_builder.packages.rpm import iter_cpio

from conftest import tar_dir, tar_file, tar_hardlink, tar_symlink


def _all_paths(root: Path) -> list[Path]:
    return [Path(dirpath) / name for dirpath, dirnames, filenames in os.walk(root) for name in dirnames + filenames]


def _assert_contained(root: Path) -> None:
    real_root = os.path.realpath(root)
    for path in _all_paths(root):
        resolved = os.path.realpath(path)
        assert resolved == real_root or resolved.startswith(real_root + os.sep), path


def test_open_deb_reads_identity_and_filelist(deb_factory) -> None:
    path = deb_factory(
        "demo",
        "2:1.4-3",
        {"/usr/bin/demo": b"#!/bin/sh\n", "/usr/share/doc/demo/README": b"hi"},
        homepage="https://example.org/demo",
    )

    package = open_package(path)

    assert isinstance(package, DebPackage)
    assert package.name == "demo"
    assert package.evr == (2, "1.4", "3")
    assert package.arch == "amd64"
    assert package.url == "https://example.org/demo"
    assert package.nevra == "demo-2:1.4-3.amd64"
    assert sorted(package.filelist) == ["/usr/bin/demo", "/usr/share/doc/demo/README"]


def test_filelist_is_computed_once(deb_factory) -> None:
    package = open_package(deb_factory("demo", "1.0-1", {"/usr/bin/demo": b"x"}))

    assert package.filelist is package.filelist


def test_open_rpm_reads_header_tags(rpm_factory) -> None:
    path = rpm_factory(
        "vera-fonts",
        "1.10",
        "5",
        {"/usr/share/fonts/vera/Vera.ttf": b"font"},
        epoch=1,
        url="https://example.org/vera",
        license="Bitstream Vera",
        changelog=[(1400000000, "Jane Doe <jane@example.org> - 1.10-5"), (1300000000, "Jane Doe <jane@example.org> - 1.9-1")],
    )

    package = open_package(path)

    assert isinstance(package, RpmPackage)
    assert package.name == "vera-fonts"
    assert package.evr == (1, "1.10", "5")
    assert package.arch == "noarch"
    assert package.license == "Bitstream Vera"
    assert package.url == "https://example.org/vera"
    assert [release.version for release in package.releases] == ["1.10", "1.9"]
    assert package.releases[0].timestamp == 1400000000
    assert package.filelist == ["/usr/share/fonts/vera/Vera.ttf"]


def test_rpm_explode_writes_files_symlinks_and_hardlinks(rpm_factory, tmp_path: Path) -> None:
    path = rpm_factory(
        "demo",
        "1.0",
        files={"/usr/share/demo/data.txt": b"payload", "/usr/share/demo/empty": b""},
        symlinks={"/usr/share/demo/link.txt": "data.txt"},
        hardlinks={"/usr/share/demo/hard.txt": "/usr/share/demo/data.txt"},
    )
    package = open_package(path)
    workspace = tmp_path / "ws"

    count = package.explode(workspace)

    assert count == 4
    assert (workspace / "usr/share/demo/data.txt").read_bytes() == b"payload"
    assert (workspace / "usr/share/demo/hard.txt").read_bytes() == b"payload"
    assert (workspace / "usr/share/demo/empty").read_bytes() == b""
    link = workspace / "usr/share/demo/link.txt"
    assert link.is_symlink()
    assert link.read_bytes() == b"payload"


def test_explode_keeps_hostile_entries_inside_workspace(deb_factory, tmp_path: Path) -> None:
    outside = tmp_path / "outside.txt"
    outside.write_text("untouched")
    path = deb_factory(
        "evil",
        "1.0-1",
        entries=[
            tar_file("../../outside.txt", b"overwritten"),
            tar_file("./usr/../../../escape.txt", b"escaped"),
            tar_symlink("./usr/share/abs-link", "/etc/passwd"),
            tar_symlink("./usr/share/up-link", "../../../../../../outside.txt"),
            tar_symlink("./usr/share/dir-link", "/"),
            tar_file("./usr/share/dir-link/planted.txt", b"planted"),
            tar_hardlink("./usr/share/hard", "../../outside.txt"),
            tar_dir("./usr/share/empty-dir"),
            tar_file("./usr/share/zero", b""),
        ],
    )
    package = open_package(path)
    workspace = tmp_path / "ws"

    package.explode(workspace)

    assert outside.read_text() == "untouched"
    assert not (tmp_path / "escape.txt").exists()
    _assert_contained(workspace)
    assert (workspace / "outside.txt").read_bytes() == b"overwritten"
    assert (workspace / "escape.txt").read_bytes() == b"escaped"
    assert os.path.realpath(workspace / "usr/share/abs-link") == os.path.realpath(workspace / "etc/passwd")
    assert (workspace / "usr/share/empty-dir").is_dir()
    assert (workspace / "usr/share/zero").read_bytes() == b""


def test_explode_with_globs_only_writes_matching_files(deb_factory, tmp_path: Path) -> None:
    path = deb_factory(
        "demo",
        "1.0-1",
        {"/usr/share/applications/demo.desktop": b"[Desktop Entry]\n", "/usr/bin/demo": b"bin"},
    )
    package = open_package(path)

    count = package.explode(tmp_path / "ws", ["/usr/share/applications/*.desktop"])

    assert count == 3
    assert (tmp_path / "ws/usr/share/applications/demo.desktop").exists()
    assert not (tmp_path / "ws/usr/bin/demo").exists()


def test_open_package_rejects_unknown_suffix(tmp_path: Path) -> None:
    path = tmp_path / "thing.zip"
    path.write_bytes(b"PK")

    with pytest.raises(UnsupportedFormat):
        open_package(path)


@pytest.mark.parametrize("suffix", [".deb", ".rpm"])
def test_open_package_rejects_corrupt_header(tmp_path: Path, suffix: str) -> None:
    path = tmp_path / f"broken{suffix}"
    path.write_bytes(b"\x00" * 200)

    with pytest.raises(CorruptHeader):
        open_package(path)


def test_normalize_member_path_strips_parent_segments() -> None:
    assert normalize_member_path("./usr/../../etc/passwd") == "/etc/passwd"
    assert normalize_member_path("/usr/share/") == "/usr/share"
    assert normalize_member_path(".") == "/"


def test_package_log_flushes_once(tmp_path: Path) -> None:
    log = PackageLog("demo")
    log.log(LogLevel.INFO, "Found %d records", 2)
    log.log(LogLevel.NONE, "raw line")

    target = log.flush(tmp_path)
    log.log(LogLevel.WARNING, "late entry")

    assert target == tmp_path / "d" / "demo.log"
    assert target.read_text() == "INFO: Found 2 records\nraw line\n"
    assert log.flush(tmp_path) is None
    assert "late entry" not in target.read_text()


@pytest.mark.parametrize("name", ["../victim", "..", "a\\b"])
def test_open_rejects_names_that_are_not_path_components(deb_factory, tmp_path: Path, name: str) -> None:
    victim = tmp_path / "victim"
    victim.mkdir()
    (victim / "keep.txt").write_text("keep")
    path = deb_factory(name, "1.0", {"/usr/bin/demo": b"x"})

    with pytest.raises(CorruptHeader):
        open_package(path)
    assert (victim / "keep.txt").read_text() == "keep"


class _HostileVersionRpm(RpmPackage):
    def _read_header(self) -> None:
        super()._read_header()
        self.version = "1/../../2"


def test_open_rejects_version_with_separator(rpm_factory) -> None:
    path = rpm_factory("demo", "1.0", "1", {"/usr/bin/demo": b"x"})

    with pytest.raises(CorruptHeader):
        _HostileVersionRpm(path).open()


def test_package_log_refuses_to_write_outside_log_dir(tmp_path: Path) -> None:
    log = PackageLog("demo")
    log.log(LogLevel.INFO, "entry")

    with pytest.raises(ValueError):
        log.flush(tmp_path / "logs", name="../../escaped")
    assert not (tmp_path / "escaped.log").exists()
    assert log.flush(tmp_path / "logs") == tmp_path / "logs" / "d" / "demo.log"


def test_iter_cpio_rejects_non_hex_header_fields() -> None:
    header = b"070701" + b"ZZZZZZZZ" + b"0" * 96

    with pytest.raises(ExtractError):
        list(iter_cpio(header + b"\x00" * 16))
