"""Explode a package and its overlay packages into one workspace."""

from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

from appstream_builder.config.policies import PackagePolicy
from appstream_builder.packages.base import LogLevel, Package, PackageError
from appstream_builder.utils.helpers import glob_value_search

from .context import PackageUniverse


def overlay_names(package: Package, policy: PackagePolicy) -> List[str]:
    """Overlay package names in application order.

    The configured override comes first, then one name per suffix
    (``<name>-data``, ``<name>-common``).
    """

    name = package.name or ""
    names: List[str] = []
    override = glob_value_search(policy.overlay_overrides, name)
    if override:
        names.append(override)
    names.extend(f"{name}{suffix}" for suffix in policy.overlay_suffixes)
    unique: List[str] = []
    for candidate in names:
        if candidate != name and candidate not in unique:
            unique.append(candidate)
    return unique


def explode_package(
    package: Package,
    workspace: Path,
    *,
    universe: PackageUniverse,
    policy: PackagePolicy,
    globs: Sequence[str] | None = None,
) -> int:
    """Explode *package* then every overlay found in *universe*.

    Failures of the main package propagate. Overlay failures are logged
    to the package log and the remaining overlays still run. Later
    overlays overwrite files written by earlier ones.
    """

    count = package.explode(workspace, globs)
    for name in overlay_names(package, policy):
        overlay = universe.find(name)
        if overlay is None or overlay is package:
            continue
        package.log.log(LogLevel.INFO, "Adding extra package %s for %s", overlay.nevra, package.name)
        try:
            count += overlay.explode(workspace, globs)
        except PackageError as exc:
            package.log.log(LogLevel.WARNING, "Failed to explode extra package %s: %s", overlay.basename, exc)
    return count


__all__ = ["overlay_names", "explode_package"]
