"""Numeric-aware version comparison in the style of ``rpmvercmp``."""

from __future__ import annotations

import re
from typing import Iterator, Tuple

_SEGMENT_PATTERN = re.compile(r"~|\^|[0-9]+|[A-Za-z]+")


def _segments(value: str) -> Iterator[str]:
    for match in _SEGMENT_PATTERN.finditer(value):
        yield match.group(0)


def compare_versions(left: str | None, right: str | None) -> int:
    """Compare two version strings segment by segment.

    Digit runs compare as integers and always sort after alphabetic runs,
    alphabetic runs compare lexically, separators are ignored. A ``~`` sorts
    before everything including the end of the string, a ``^`` sorts after
    the end of the string but before any further segment. When one string
    runs out of segments first the other one is newer.
    """

    left = left or ""
    right = right or ""
    if left == right:
        return 0

    left_segments = list(_segments(left))
    right_segments = list(_segments(right))
    index = 0
    while True:
        left_seg = left_segments[index] if index < len(left_segments) else None
        right_seg = right_segments[index] if index < len(right_segments) else None
        index += 1

        if left_seg == "~" or right_seg == "~":
            if left_seg != "~":
                return 1
            if right_seg != "~":
                return -1
            continue
        if left_seg == "^" or right_seg == "^":
            if left_seg is None:
                return -1
            if right_seg is None:
                return 1
            if left_seg != "^":
                return 1
            if right_seg != "^":
                return -1
            continue
        if left_seg is None and right_seg is None:
            return 0
        if left_seg is None:
            return -1
        if right_seg is None:
            return 1

        left_numeric = left_seg.isdigit()
        right_numeric = right_seg.isdigit()
        if left_numeric != right_numeric:
            return 1 if left_numeric else -1
        if left_numeric:
            result = (int(left_seg) > int(right_seg)) - (int(left_seg) < int(right_seg))
        else:
            result = (left_seg > right_seg) - (left_seg < right_seg)
        if result:
            return result


def compare_evr(
    left: Tuple[int, str | None, str | None],
    right: Tuple[int, str | None, str | None],
) -> int:
    """Compare ``(epoch, version, release)`` triples."""

    if left[0] != right[0]:
        return 1 if left[0] > right[0] else -1
    result = compare_versions(left[1], right[1])
    if result:
        return result
    return compare_versions(left[2], right[2])


def split_deb_version(value: str) -> Tuple[int, str, str | None]:
    """Split ``[epoch:]upstream[-revision]`` into its three parts."""

    epoch = 0
    remainder = value.strip()
    if ":" in remainder:
        head, remainder = remainder.split(":", 1)
        epoch = int(head) if head.isdigit() else 0
    release: str | None = None
    if "-" in remainder:
        remainder, release = remainder.rsplit("-", 1)
    return epoch, remainder, release


__all__ = ["compare_versions", "compare_evr", "split_deb_version"]
