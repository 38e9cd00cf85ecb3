"""
Version comparison — ordering and breaking-change classification.

This policy drives update warnings, so it is deliberately simple and
stable across ecosystems (npm semver, PEP 440-ish pip versions, Go
module tags):

1. Normalization.  Leading range operators and a ``v`` prefix are
   stripped (``^1.2``, ``~=1.2``, ``>=1.2``, ``v1.2`` → ``1.2``).
   Build metadata after ``+`` is ignored.  The pre-release tag is
   whatever follows the first ``-`` (``1.0.0-rc.1`` → ``rc.1``).

2. Ordering.  Release components are compared pairwise, the shorter
   side padded with ``0``.  Two numeric components compare as
   integers; a non-numeric component sorts below any numeric one; two
   non-numeric components compare lexicographically.  With equal
   releases, a version with a pre-release tag sorts below the same
   version without one; two tags compare identifier by identifier
   using the same rules.  Malformed input never raises.

3. Breaking.  ``is_breaking(a, b)`` is true when the major components
   differ, or when the pre-release tags differ (one side has a tag the
   other lacks, or both have different tags).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Iterable


class Ordering(StrEnum):
    LESS = "less"
    EQUAL = "equal"
    GREATER = "greater"


_PREFIX_RE = re.compile(r"^[\s^~=<>!v]+", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedVersion:
    release: tuple[str, ...]
    prerelease: str | None = None
    build: str | None = None

    @property
    def major(self) -> str:
        return self.release[0] if self.release else "0"


def clean_version(version: str | None) -> str:
    """Strip range operators, ``v`` prefixes and surrounding whitespace."""
    if not version:
        return ""
    # "1.2 - 2.0" and ">=1.2,<2" keep only the lower bound
    head = re.split(r"[\s,|]+", version.strip(), maxsplit=1)[0]
    return _PREFIX_RE.sub("", head)


def parse_version(version: str | None) -> ParsedVersion:
    cleaned = clean_version(version)
    build = None
    if "+" in cleaned:
        cleaned, build = cleaned.split("+", 1)
    prerelease = None
    if "-" in cleaned:
        cleaned, prerelease = cleaned.split("-", 1)
    release = tuple(cleaned.split(".")) if cleaned else ()
    return ParsedVersion(release=release, prerelease=prerelease or None, build=build)


def _compare_component(a: str, b: str) -> int:
    a_num, b_num = a.isdigit(), b.isdigit()
    if a_num and b_num:
        return (int(a) > int(b)) - (int(a) < int(b))
    if a_num:
        return 1
    if b_num:
        return -1
    return (a > b) - (a < b)


def _compare_parts(a: tuple[str, ...], b: tuple[str, ...], pad: str) -> int:
    width = max(len(a), len(b))
    for x, y in zip(a + (pad,) * (width - len(a)), b + (pad,) * (width - len(b))):
        result = _compare_component(x, y)
        if result:
            return result
    return 0


def _cmp(a: ParsedVersion, b: ParsedVersion) -> int:
    result = _compare_parts(a.release, b.release, "0")
    if result:
        return result
    if a.prerelease == b.prerelease:
        return 0
    if a.prerelease is None:
        return 1
    if b.prerelease is None:
        return -1
    # A longer tag with an equal prefix is newer: rc < rc.1
    return _compare_parts(
        tuple(a.prerelease.split(".")), tuple(b.prerelease.split(".")), ""
    ) or (len(a.prerelease) > len(b.prerelease)) - (len(a.prerelease) < len(b.prerelease))


def compare(a: str | None, b: str | None) -> Ordering:
    """Order ``a`` relative to ``b``."""
    result = _cmp(parse_version(a), parse_version(b))
    if result < 0:
        return Ordering.LESS
    if result > 0:
        return Ordering.GREATER
    return Ordering.EQUAL


def is_breaking(a: str | None, b: str | None) -> bool:
    """Would moving between ``a`` and ``b`` likely break callers?"""
    pa, pb = parse_version(a), parse_version(b)
    if _compare_component(pa.major, pb.major) != 0:
        return True
    return pa.prerelease != pb.prerelease


def is_newer(candidate: str | None, current: str | None) -> bool:
    return compare(candidate, current) is Ordering.GREATER


def max_version(versions: Iterable[str]) -> str | None:
    best: str | None = None
    for version in versions:
        if best is None or is_newer(version, best):
            best = version
    return best
