"""Installation snapshot: what a build actually produced.

A snapshot is the unit of comparison between two releases of one track. It
is created once per build, never mutated, and persisted as JSON next to the
pack so that later runs can read it back at a tag without a checkout.

Persisted form:

    {
      "successful": [{"identifier": "sodium", "category": "optimization"}],
      "failed": [
        {"identifier": "xaero", "category": "useful",
         "attempted_alternatives": [{"identifier": "journeymap", "outcome": "tried_failed"}]}
      ],
      "alternative_installed": [
        {"identifier": "iris", "category": "visual",
         "installed_alternative": {"identifier": "oculus"},
         "other_alternatives": [{"identifier": "optifabric", "outcome": "not_attempted"}]}
      ]
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from mpr.core.result import Err, Ok, Result
from mpr.core.structured import StrDict, as_obj_list, as_str_dict, get_str
from mpr.platform.files import atomic_write_text

__all__ = [
    "AlternativeAttempt",
    "AlternativeInstalledItem",
    "AttemptOutcome",
    "FailedItem",
    "InstallationSnapshot",
    "SuccessfulItem",
    "parse_snapshot",
    "write_snapshot",
]

AttemptOutcome = Literal["tried_failed", "not_attempted"]


@dataclass(frozen=True, slots=True)
class AlternativeAttempt:
    identifier: str
    outcome: AttemptOutcome = "tried_failed"


@dataclass(frozen=True, slots=True)
class SuccessfulItem:
    identifier: str
    category: str


@dataclass(frozen=True, slots=True)
class FailedItem:
    """Primary item that failed, along with every alternative that also failed."""

    identifier: str
    category: str
    attempted_alternatives: tuple[AlternativeAttempt, ...] = ()


@dataclass(frozen=True, slots=True)
class AlternativeInstalledItem:
    """Primary item that failed and was replaced by exactly one fallback.

    Alternatives listed before the installed one were tried and failed; the
    ones after it were never attempted.
    """

    identifier: str
    category: str
    installed_alternative: str
    other_alternatives: tuple[AlternativeAttempt, ...] = ()


@dataclass(frozen=True, slots=True)
class InstallationSnapshot:
    successful: tuple[SuccessfulItem, ...] = ()
    failed: tuple[FailedItem, ...] = ()
    alternative_installed: tuple[AlternativeInstalledItem, ...] = ()

    @classmethod
    def create(
        cls,
        successful: tuple[SuccessfulItem, ...] | list[SuccessfulItem] = (),
        failed: tuple[FailedItem, ...] | list[FailedItem] = (),
        alternative_installed: tuple[AlternativeInstalledItem, ...]
        | list[AlternativeInstalledItem] = (),
    ) -> InstallationSnapshot:
        """Build a snapshot, rejecting identifiers that appear more than once.

        Raises:
            ValueError: If an identifier occurs in more than one entry.
        """
        seen: set[str] = set()
        duplicates: list[str] = []
        for identifier in (
            *(i.identifier for i in successful),
            *(i.identifier for i in failed),
            *(i.identifier for i in alternative_installed),
        ):
            if identifier in seen:
                duplicates.append(identifier)
            seen.add(identifier)
        if duplicates:
            raise ValueError(f"identifiers listed more than once: {', '.join(sorted(duplicates))}")
        return cls(tuple(successful), tuple(failed), tuple(alternative_installed))

    def installed_identifiers(self) -> set[str]:
        """Identifiers of primaries that ended up in the pack, directly or via a fallback."""
        return {i.identifier for i in self.successful} | {
            i.identifier for i in self.alternative_installed
        }

    def to_dict(self) -> dict[str, object]:
        return {
            "successful": [
                {"identifier": i.identifier, "category": i.category}
                for i in sorted(self.successful, key=lambda i: i.identifier)
            ],
            "failed": [
                {
                    "identifier": i.identifier,
                    "category": i.category,
                    "attempted_alternatives": [_attempt_dict(a) for a in i.attempted_alternatives],
                }
                for i in sorted(self.failed, key=lambda i: i.identifier)
            ],
            "alternative_installed": [
                {
                    "identifier": i.identifier,
                    "category": i.category,
                    "installed_alternative": {"identifier": i.installed_alternative},
                    "other_alternatives": [_attempt_dict(a) for a in i.other_alternatives],
                }
                for i in sorted(self.alternative_installed, key=lambda i: i.identifier)
            ],
        }

    def to_json(self) -> str:
        """Normalized JSON: rewriting an unchanged snapshot yields identical bytes."""
        return json.dumps(self.to_dict(), indent=2) + "\n"


def _attempt_dict(attempt: AlternativeAttempt) -> dict[str, str]:
    return {"identifier": attempt.identifier, "outcome": attempt.outcome}


def _parse_attempts(raw: object, field_name: str) -> tuple[AlternativeAttempt, ...]:
    if raw is None:
        return ()
    entries = as_obj_list(raw)
    if entries is None:
        raise ValueError(f"'{field_name}' must be an array")

    out: list[AlternativeAttempt] = []
    for entry in entries:
        # Older state files list bare identifiers.
        if isinstance(entry, str):
            out.append(AlternativeAttempt(entry))
            continue
        table = as_str_dict(entry)
        identifier = get_str(table, "identifier") if table is not None else None
        if table is None or identifier is None:
            raise ValueError(f"'{field_name}' entries need an 'identifier'")
        outcome = get_str(table, "outcome") or "tried_failed"
        if outcome not in ("tried_failed", "not_attempted"):
            raise ValueError(f"unknown alternative outcome: {outcome}")
        out.append(
            AlternativeAttempt(
                identifier,
                "not_attempted" if outcome == "not_attempted" else "tried_failed",
            )
        )
    return tuple(out)


def _records(data: StrDict, key: str) -> list[tuple[str, str, StrDict]]:
    entries = as_obj_list(data.get(key))
    if entries is None:
        raise ValueError(f"'{key}' must be an array")

    out: list[tuple[str, str, StrDict]] = []
    for entry in entries:
        table = as_str_dict(entry)
        if table is None:
            raise ValueError(f"'{key}' entries must be objects")
        identifier = get_str(table, "identifier")
        category = get_str(table, "category")
        if identifier is None or category is None:
            raise ValueError(f"'{key}' entries need 'identifier' and 'category' strings")
        out.append((identifier, category, table))
    return out


def _installed_alternative(table: StrDict) -> str:
    raw = table.get("installed_alternative")
    if isinstance(raw, str):
        return raw
    nested = as_str_dict(raw)
    identifier = get_str(nested, "identifier") if nested is not None else None
    if identifier is None:
        raise ValueError("'alternative_installed' entries need an 'installed_alternative'")
    return identifier


def parse_snapshot(text: str) -> Result[InstallationSnapshot, str]:
    """Parse the persisted JSON form; the error is a human-readable reason."""
    try:
        data_obj: object = json.loads(text)
    except json.JSONDecodeError as e:
        return Err(f"invalid JSON: {e}")

    data = as_str_dict(data_obj)
    if data is None:
        return Err("expected a JSON object")

    try:
        successful = [SuccessfulItem(i, c) for i, c, _ in _records(data, "successful")]
        failed = [
            FailedItem(i, c, _parse_attempts(t.get("attempted_alternatives"), "attempted_alternatives"))
            for i, c, t in _records(data, "failed")
        ]
        alternative_installed = [
            AlternativeInstalledItem(
                i,
                c,
                _installed_alternative(t),
                _parse_attempts(t.get("other_alternatives"), "other_alternatives"),
            )
            for i, c, t in _records(data, "alternative_installed")
        ]
        return Ok(InstallationSnapshot.create(successful, failed, alternative_installed))
    except ValueError as e:
        return Err(str(e))


def write_snapshot(path: Path, snapshot: InstallationSnapshot) -> None:
    """Persist a snapshot in normalized form, creating parent directories."""
    atomic_write_text(path, snapshot.to_json())
