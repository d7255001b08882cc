"""Disable every package that is not the newest of its name."""

from __future__ import annotations

from typing import Dict, Iterable, List

from appstream_builder.packages.base import LogLevel, Package
from appstream_builder.utils.logging import get_logger

_LOGGER = get_logger(module=__name__)


def disable_older(packages: Iterable[Package]) -> List[Package]:
    """Keep only the newest package per name enabled.

    Packages without a name are left alone. When two packages compare
    equal the first one seen stays enabled. Returns the packages that were
    disabled.
    """

    newest: Dict[str, Package] = {}
    disabled: List[Package] = []
    for package in packages:
        if not package.name:
            continue
        found = newest.get(package.name)
        if found is None:
            newest[package.name] = package
            continue
        if package.compare(found) > 0:
            loser, newest[package.name] = found, package
        else:
            loser = package
        loser.enabled = False
        loser.log.log(LogLevel.INFO, "Disabled as %s is newer", newest[package.name].nevra)
        disabled.append(loser)
    if disabled:
        _LOGGER.info("Disabled older packages", count=len(disabled))
    return disabled


__all__ = ["disable_older"]
