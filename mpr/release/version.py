"""Release versions and track ordering.

Two version-like things coexist and must never be confused:

- the *track* (a game version such as "1.21.10"), which has 2 or 3
  numeric components and sorts numerically;
- the *release version* of the pack on that track ("0.1.5"), which always
  has exactly 3 components and only ever grows by its patch number.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_TRACK_RE = re.compile(r"([0-9]+)\.([0-9]+)(?:\.([0-9]+))?")
_RELEASE_RE = re.compile(r"([0-9]+)\.([0-9]+)\.([0-9]+)")


@dataclass(frozen=True, slots=True, order=True)
class ReleaseVersion:
    major: int
    minor: int
    patch: int

    def increment(self) -> ReleaseVersion:
        return ReleaseVersion(self.major, self.minor, self.patch + 1)

    def previous(self) -> ReleaseVersion | None:
        if self.patch == 0:
            return None
        return ReleaseVersion(self.major, self.minor, self.patch - 1)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


# The first release of a track already carries a minor bump.
INITIAL_RELEASE = ReleaseVersion(0, 1, 0)
ZERO_RELEASE = ReleaseVersion(0, 0, 0)


def parse_release_version(text: str) -> ReleaseVersion | None:
    m = _RELEASE_RE.fullmatch(text)
    if m is None:
        return None
    return ReleaseVersion(int(m.group(1)), int(m.group(2)), int(m.group(3)))


@dataclass(frozen=True, slots=True, order=True)
class TrackVersion:
    major: int
    minor: int
    patch: int = 0


def parse_track(track: str) -> TrackVersion | None:
    """Parse "1.14" or "1.21.10"; snapshots and betas ("25w41a") give None."""
    m = _TRACK_RE.fullmatch(track)
    if m is None:
        return None
    return TrackVersion(int(m.group(1)), int(m.group(2)), int(m.group(3) or 0))


def is_valid_track(track: str) -> bool:
    parsed = parse_track(track)
    if parsed is None:
        return False
    if parsed.major >= 2:
        return True
    return parsed.major == 1 and parsed.minor >= 14


def compare_tracks(a: str, b: str) -> int:
    """cmp-style ordering: numeric when both parse, lexicographic otherwise."""
    pa = parse_track(a)
    pb = parse_track(b)
    if pa is None or pb is None:
        return (a > b) - (a < b)
    return (pa > pb) - (pa < pb)
