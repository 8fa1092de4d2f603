"""Error payload shared by the ledger, detector, services and orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ReleaseErrorKind = Literal[
    # Retries exhausted on the catalog, upload endpoint or git remote.
    "network",
    # A git subprocess failed, or a tag name/commit was invalid or absent.
    "ledger",
    "tag_exists",
    "not_found",
    # Persisted snapshot at a tag is missing or malformed.
    "snapshot_load",
    # Install, export or upload of an artifact failed.
    "artifact",
    "config",
    "invalid_input",
]


@dataclass(frozen=True, slots=True)
class ReleaseError:
    kind: ReleaseErrorKind
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message
