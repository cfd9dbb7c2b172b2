"""
Semver-like version ordering for revision lineages.

Accepts MAJOR[.MINOR[.PATCH]][-PRERELEASE][+BUILD]; missing components
count as zero and build metadata is ignored for ordering. A pre-release
sorts below the same release, identifiers compare numerically when both
are numeric.
"""

import re
from functools import total_ordering
from typing import Tuple

from config_logging import ValidationError

VERSION_PATTERN = re.compile(
    r'^v?(\d+)(?:\.(\d+))?(?:\.(\d+))?'
    r'(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?'
    r'(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$'
)


@total_ordering
class _Identifier:
    """One dot-separated pre-release identifier."""

    def __init__(self, raw: str):
        self.raw = raw
        self.numeric = raw.isdigit()

    def __eq__(self, other):
        return self.raw == other.raw

    def __lt__(self, other):
        if self.numeric and other.numeric:
            return int(self.raw) < int(other.raw)
        if self.numeric != other.numeric:
            return self.numeric  # numeric identifiers sort first
        return self.raw < other.raw


def parse_version(version: str) -> Tuple:
    """
    Parse a version string into a sortable key.

    Raises:
        ValidationError: if the string is not a version
    """
    match = VERSION_PATTERN.match(str(version or '').strip())
    if not match:
        raise ValidationError(f"Invalid version: {version}", field='version')
    major, minor, patch, prerelease = match.groups()
    release = (int(major), int(minor or 0), int(patch or 0))
    if prerelease is None:
        # A release outranks every pre-release of the same numbers
        return release + ((1,),)
    return release + ((0, tuple(_Identifier(p) for p in prerelease.split('.'))),)


def compare_versions(left: str, right: str) -> int:
    """Return -1, 0 or 1 as left sorts before, equal to, or after right."""
    a, b = parse_version(left), parse_version(right)
    return (a > b) - (a < b)


def is_newer(candidate: str, baseline: str) -> bool:
    return compare_versions(candidate, baseline) > 0


def bump(version: str, part: str = 'patch') -> str:
    """
    Next release after version.

    bump('2.1.0') -> '2.1.1'; bump('2.1.0', 'minor') -> '2.2.0';
    a pre-release bumps to its own release: bump('2.1.0-rc.1') -> '2.1.0'.
    """
    key = parse_version(version)
    major, minor, patch = key[0], key[1], key[2]
    if key[3][0] == 0 and part == 'patch':
        return f"{major}.{minor}.{patch}"
    if part == 'major':
        return f"{major + 1}.0.0"
    if part == 'minor':
        return f"{major}.{minor + 1}.0"
    if part == 'patch':
        return f"{major}.{minor}.{patch + 1}"
    raise ValueError(f"Unknown version part: {part}")

