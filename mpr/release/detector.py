"""Decide whether a fresh build differs from the last released one."""

from __future__ import annotations

from typing import TypeAlias

from mpr.core.result import Err, Ok, Result
from mpr.git.ledger import Ledger
from mpr.output.console import ConsoleProtocol
from mpr.release.errors import ReleaseError
from mpr.release.snapshot import InstallationSnapshot, parse_snapshot
from mpr.release.tags import ReleaseTag

__all__ = ["differs", "load_snapshot_at", "needs_release"]


_Keys: TypeAlias = tuple[list[tuple[str, str]], list[tuple[str, str]], list[tuple[str, str, str]]]


def _keys(snapshot: InstallationSnapshot) -> _Keys:
    successful = sorted((i.identifier, i.category) for i in snapshot.successful)
    failed = sorted((i.identifier, i.category) for i in snapshot.failed)
    alternative = sorted(
        (i.identifier, i.category, i.installed_alternative) for i in snapshot.alternative_installed
    )
    return successful, failed, alternative


def differs(old: InstallationSnapshot, new: InstallationSnapshot) -> bool:
    """True when the two snapshots describe different pack contents.

    Entry order is irrelevant. Only identity and category matter, plus the
    chosen fallback for items that were replaced; the alternatives that were
    tried along the way do not.
    """
    old_sets = _keys(old)
    new_sets = _keys(new)

    for old_entries, new_entries in zip(old_sets, new_sets, strict=True):
        if len(old_entries) != len(new_entries):
            return True
    for old_entries, new_entries in zip(old_sets, new_sets, strict=True):
        if any(a != b for a, b in zip(old_entries, new_entries, strict=True)):
            return True
    return False


def load_snapshot_at(
    ledger: Ledger,
    tag: ReleaseTag,
    path: str,
) -> Result[InstallationSnapshot, ReleaseError]:
    """Read and parse the snapshot persisted in the commit bound to `tag`."""
    text = ledger.read_file_at(tag, path)
    if isinstance(text, Err):
        return Err(
            ReleaseError(
                kind="snapshot_load",
                message=f"cannot read {path} at {tag}",
                hint=text.error.hint,
            )
        )

    parsed = parse_snapshot(text.value)
    if isinstance(parsed, Err):
        return Err(
            ReleaseError(
                kind="snapshot_load",
                message=f"malformed {path} at {tag}",
                hint=parsed.error,
            )
        )
    return Ok(parsed.value)


def needs_release(
    ledger: Ledger,
    track: str,
    snapshot: InstallationSnapshot,
    snapshot_path: str,
    *,
    console: ConsoleProtocol | None = None,
) -> Result[bool, ReleaseError]:
    """Whether `snapshot` warrants a new release of `track`.

    A track without tags is new. An unreadable prior snapshot counts as a
    change, so a broken history never silently suppresses a release. Only a
    failure to list tags is an error.
    """
    latest = ledger.latest_tag(track)
    if isinstance(latest, Err):
        return latest
    if latest.value is None:
        return Ok(True)

    old = load_snapshot_at(ledger, latest.value, snapshot_path)
    if isinstance(old, Err):
        if console is not None:
            console.warning(f"{old.error.pretty()}; treating {track} as changed")
        return Ok(True)

    return Ok(differs(old.value, snapshot))
