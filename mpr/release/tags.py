"""Release tag names: `{track}_{major}.{minor}.{patch}`.

This string is the only contract other tooling needs to read releases, so
parsing is strict. The name is split on its final underscore and each half
is validated on its own: the track half must have 2 or 3 numeric
components, the release half exactly 3.
"""

from __future__ import annotations

from dataclasses import dataclass

from mpr.release.version import ReleaseVersion, parse_release_version, parse_track


@dataclass(frozen=True, slots=True)
class ReleaseTag:
    track: str
    release: ReleaseVersion

    @property
    def name(self) -> str:
        return f"{self.track}_{self.release}"

    def next(self) -> ReleaseTag:
        return ReleaseTag(self.track, self.release.increment())

    def previous(self) -> ReleaseTag | None:
        prev = self.release.previous()
        if prev is None:
            return None
        return ReleaseTag(self.track, prev)

    def __str__(self) -> str:
        return self.name


def parse_tag(name: str) -> ReleaseTag | None:
    track, sep, release_text = name.rpartition("_")
    if not sep:
        return None
    if parse_track(track) is None:
        return None
    release = parse_release_version(release_text)
    if release is None:
        return None
    return ReleaseTag(track=track, release=release)


def tag_pattern(track: str) -> str:
    """`git tag -l` glob matching every tag of one track."""
    return f"{track}_*"
