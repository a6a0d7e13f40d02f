from __future__ import annotations

import re
from typing import Iterable, NamedTuple

_STRICT_VERSION_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")


class Version(NamedTuple):
    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def parse_version(text: str) -> Version | None:
    """Parse ``major.minor.patch``; pre-release and build suffixes are rejected."""
    match = _STRICT_VERSION_RE.match(text.strip())
    if not match:
        return None
    return Version(int(match.group(1)), int(match.group(2)), int(match.group(3)))


def compare_versions(left: Version, right: Version) -> int:
    if left == right:
        return 0
    return 1 if left > right else -1


def latest_version(candidates: Iterable[str]) -> Version | None:
    parsed = [version for version in (parse_version(item) for item in candidates) if version is not None]
    if not parsed:
        return None
    return max(parsed)
