from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Protocol

from mpr.core.config import VariantConfig
from mpr.core.errors import ErrorCode
from mpr.core.result import Result
from mpr.release.errors import ReleaseError
from mpr.release.snapshot import InstallationSnapshot
from mpr.release.tags import ReleaseTag
from mpr.release.version import ReleaseVersion

RunMode = Literal["check", "publish", "check-and-publish"]
CheckStatus = Literal["new", "changed", "unchanged", "error"]
PublishStatus = Literal["published", "skipped", "error"]
UploadOutcome = Literal["uploaded", "duplicate"]


@dataclass(frozen=True, slots=True)
class TrackContext:
    """Everything a build or upload needs to know about the track at hand."""

    track: str
    release: ReleaseVersion
    variants: tuple[VariantConfig, ...]

    @property
    def tag(self) -> ReleaseTag:
        return ReleaseTag(self.track, self.release)


@dataclass(frozen=True, slots=True)
class Artifact:
    variant: VariantConfig
    path: Path


@dataclass(frozen=True, slots=True)
class BuildOutput:
    snapshot: InstallationSnapshot
    # In build order, one per variant.
    artifacts: tuple[Artifact, ...]


class TrackBuilder(Protocol):
    def build(self, ctx: TrackContext) -> Result[BuildOutput, ReleaseError]: ...


class Publisher(Protocol):
    def publish(self, ctx: TrackContext, artifact: Artifact) -> Result[UploadOutcome, ReleaseError]: ...


@dataclass(frozen=True, slots=True)
class CheckResult:
    track: str
    status: CheckStatus
    old_tag: ReleaseTag | None = None
    new_tag: ReleaseTag | None = None
    # Commit the new tag is (or will be) bound to.
    commit: str | None = None
    error: ReleaseError | None = None
    # False when the tag already existed at the intended commit.
    tag_created: bool = False


@dataclass(frozen=True, slots=True)
class PublishResult:
    track: str
    status: PublishStatus
    tag: ReleaseTag | None = None
    reason: str | None = None
    error: ReleaseError | None = None


@dataclass(frozen=True, slots=True)
class RunSummary:
    """Aggregated outcome of one orchestrator run."""

    checks: tuple[CheckResult, ...] = ()
    publishes: tuple[PublishResult, ...] = ()
    # Failures outside any single track (commit, push).
    run_errors: tuple[ReleaseError, ...] = ()
    # Set when the run could not start (catalog or availability check failed).
    fatal: ReleaseError | None = None

    @property
    def failed_checks(self) -> list[CheckResult]:
        return [c for c in self.checks if c.status == "error"]

    @property
    def failed_publishes(self) -> list[PublishResult]:
        return [p for p in self.publishes if p.status == "error"]

    @property
    def exit_code(self) -> ErrorCode:
        if self.fatal is not None:
            if self.fatal.kind == "config":
                return ErrorCode.CONFIG_ERROR
            return ErrorCode.NETWORK_ERROR
        if self.run_errors or self.failed_checks or self.failed_publishes:
            return ErrorCode.TRACK_ERROR
        return ErrorCode.OK
