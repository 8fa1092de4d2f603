"""Two-phase release workflow across every track.

Phase 1 (check-and-tag) builds each track, compares the result with the
snapshot of its latest release and mints the next tag: changed and new
tracks are bound to one shared new commit, unchanged tracks to the commit of
their previous tag. Every non-errored track advances, which keeps release
numbers aligned across tracks.

Phase 2 (publish) re-derives everything from the ledger. A track is
published when its latest tag is the first of the line or is bound to a
different commit than the tag before it. Publishing checks out the tag,
rebuilds, uploads, and always returns to the primary branch.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import replace

from mpr.core.config import ReleaseConfig
from mpr.core.result import Err, Ok, Result
from mpr.git.ledger import Ledger
from mpr.net.http import HttpClient, RetryPolicy
from mpr.output.console import ConsoleProtocol, Style
from mpr.platform.files import atomic_write_text
from mpr.release.detector import needs_release
from mpr.release.discovery import check_service_availability, list_valid_tracks
from mpr.release.errors import ReleaseError
from mpr.release.model import (
    CheckResult,
    Publisher,
    PublishResult,
    RunMode,
    RunSummary,
    TrackBuilder,
    TrackContext,
)
from mpr.release.snapshot import InstallationSnapshot, write_snapshot
from mpr.release.tags import ReleaseTag
from mpr.release.version import INITIAL_RELEASE, ReleaseVersion
from mpr.services.report import render_report

__all__ = ["ReleaseOrchestrator"]


def _track_error(
    track: str,
    error: ReleaseError,
    *,
    old_tag: ReleaseTag | None = None,
    new_tag: ReleaseTag | None = None,
) -> CheckResult:
    return CheckResult(track=track, status="error", old_tag=old_tag, new_tag=new_tag, error=error)


class ReleaseOrchestrator:
    """Drives phase 1 and/or phase 2 for a list of tracks.

    Tracks come from the catalog unless given explicitly. Collaborators are
    injected so tests can run the whole state machine against a real git
    repository with fake builds and uploads.
    """

    def __init__(
        self,
        *,
        config: ReleaseConfig,
        ledger: Ledger,
        builder: TrackBuilder,
        publisher: Publisher,
        console: ConsoleProtocol,
        http: HttpClient | None = None,
        tracks: list[str] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config
        self._ledger = ledger
        self._builder = builder
        self._publisher = publisher
        self._console = console
        self._http = http
        self._tracks = tracks
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run(self, mode: RunMode) -> RunSummary:
        if mode != "publish":
            availability = self._check_availability()
            if isinstance(availability, Err):
                return self._abort(availability.error)

        tracks = self._resolve_tracks()
        if isinstance(tracks, Err):
            return self._abort(tracks.error)

        summary = RunSummary()
        to_publish = tracks.value
        if mode in ("check", "check-and-publish"):
            summary = self.check_and_tag(tracks.value)
            # Tracks that failed phase 1 are not published from an older tag.
            failed = {c.track for c in summary.failed_checks}
            to_publish = [t for t in tracks.value if t not in failed]
        if mode in ("publish", "check-and-publish"):
            summary = replace(summary, publishes=self.publish_all(to_publish))
        return summary

    def publish_track(self, track: str) -> RunSummary:
        """Publish the latest tag of one track, whatever the tag before it."""
        self._console.header(f"Publishing {track}")
        latest = self._ledger.latest_tag(track)
        if isinstance(latest, Err):
            result = PublishResult(track=track, status="error", error=latest.error)
        elif latest.value is None:
            result = PublishResult(
                track=track,
                status="error",
                error=ReleaseError(
                    kind="not_found",
                    message=f"no release tag for {track}",
                    hint="Run `mpr check` first",
                ),
            )
        else:
            result = self._publish_tag(latest.value)
        return RunSummary(publishes=(result,))

    # ------------------------------------------------------------------
    # Phase 1
    # ------------------------------------------------------------------

    def check_and_tag(self, tracks: list[str]) -> RunSummary:
        self._console.header("Phase 1: check and tag")
        results = [
            self._check_track(track, index, len(tracks)) for index, track in enumerate(tracks, 1)
        ]

        pending = [r for r in results if r.status in ("new", "changed")]
        if not pending and not self._config.ledger.tag_unchanged:
            self._console.info("no changes detected on any track; no tags created")
            return RunSummary(checks=tuple(results))

        run_errors: list[ReleaseError] = []
        if pending:
            commit = self._commit_changes([r.track for r in pending])
            results = [
                r if r.status not in ("new", "changed") else self._bind(r, commit) for r in results
            ]

        self._console.newline()
        self._console.print("Creating tags", Style.BOLD)
        results = [self._tag(r) if r.status != "error" else r for r in results]

        if self._config.ledger.push and any(r.tag_created for r in results):
            self._console.info(f"pushing tags to {self._ledger.remote}")
            pushed = self._ledger.push_tags()
            if isinstance(pushed, Err):
                self._console.error(pushed.error.pretty())
                run_errors.append(pushed.error)
            else:
                self._console.success("pushed tags")

        return RunSummary(checks=tuple(results), run_errors=tuple(run_errors))

    def _check_track(self, track: str, index: int, total: int) -> CheckResult:
        self._console.header(f"[{index}/{total}] {track}")

        latest = self._ledger.latest_tag(track)
        if isinstance(latest, Err):
            return _track_error(track, latest.error)
        old_tag = latest.value

        if old_tag is None:
            release = self._initial_release()
            if isinstance(release, Err):
                return _track_error(track, release.error)
            new_tag = ReleaseTag(track, release.value)
            self._console.info(f"no release yet; first tag will be {new_tag}")
        else:
            new_tag = old_tag.next()
            self._console.info(f"latest release: {old_tag}")

        ctx = TrackContext(track=track, release=new_tag.release, variants=self._config.variants)
        try:
            built = self._builder.build(ctx)
        except Exception as e:  # noqa: BLE001
            built = Err(ReleaseError(kind="artifact", message=f"build crashed: {e}"))
        if isinstance(built, Err):
            self._console.error(built.error.pretty())
            return _track_error(track, built.error, old_tag=old_tag, new_tag=new_tag)
        snapshot = built.value.snapshot

        snapshot_path = self._config.ledger.snapshot_path_for(track)
        changed = needs_release(self._ledger, track, snapshot, snapshot_path, console=self._console)
        if isinstance(changed, Err):
            return _track_error(track, changed.error, old_tag=old_tag, new_tag=new_tag)

        persisted = self._persist(track, snapshot_path, snapshot)
        if isinstance(persisted, Err):
            self._console.error(persisted.error.pretty())
            return _track_error(track, persisted.error, old_tag=old_tag, new_tag=new_tag)

        if not changed.value and old_tag is not None:
            commit = self._ledger.commit_of(old_tag)
            if isinstance(commit, Err):
                return _track_error(track, commit.error, old_tag=old_tag, new_tag=new_tag)
            self._console.success(f"no changes since {old_tag}")
            return CheckResult(
                track=track,
                status="unchanged",
                old_tag=old_tag,
                new_tag=new_tag,
                commit=commit.value,
            )

        self._console.success(f"changes detected; will release {new_tag}")
        return CheckResult(
            track=track,
            status="new" if old_tag is None else "changed",
            old_tag=old_tag,
            new_tag=new_tag,
        )

    def _initial_release(self) -> Result[ReleaseVersion, ReleaseError]:
        if not self._config.ledger.align_new_tracks:
            return Ok(INITIAL_RELEASE)
        highest = self._ledger.highest_global_release()
        if isinstance(highest, Err):
            return highest
        return Ok(max(INITIAL_RELEASE, highest.value.increment()))

    def _persist(
        self,
        track: str,
        snapshot_path: str,
        snapshot: InstallationSnapshot,
    ) -> Result[None, ReleaseError]:
        root = self._ledger.root
        try:
            write_snapshot(root / snapshot_path, snapshot)
            report_path = self._config.ledger.report_path_for(track)
            if report_path is not None:
                atomic_write_text(
                    root / report_path,
                    render_report(self._config.items, snapshot, track=track),
                )
        except OSError as e:
            return Err(ReleaseError(kind="artifact", message=f"cannot write state for {track}: {e}"))
        return Ok(None)

    def _commit_changes(self, tracks: list[str]) -> Result[str, ReleaseError]:
        message = f"Update {self._config.project.name} for {', '.join(tracks)}"
        commit = self._ledger.commit_all(message)
        match commit:
            case Ok(sha):
                self._console.success(f"committed changes ({sha[:8]})")
            case Err(e):
                self._console.error(e.pretty())
        return commit

    @staticmethod
    def _bind(result: CheckResult, commit: Result[str, ReleaseError]) -> CheckResult:
        if isinstance(commit, Err):
            return replace(result, status="error", error=commit.error)
        return replace(result, commit=commit.value)

    def _tag(self, result: CheckResult) -> CheckResult:
        tag = result.new_tag
        assert tag is not None and result.commit is not None

        exists = self._ledger.tag_exists(tag.name)
        if isinstance(exists, Err):
            return replace(result, status="error", error=exists.error)
        if exists.value:
            bound = self._ledger.commit_of(tag)
            if isinstance(bound, Ok) and bound.value == result.commit:
                self._console.info(f"{tag} already exists at the intended commit; skipping")
                return result
            error = ReleaseError(
                kind="tag_exists",
                message=f"tag {tag} already exists at a different commit",
                hint="Delete the stray local tag or fetch tags, then re-run",
            )
            self._console.error(error.pretty())
            return replace(result, status="error", error=error)

        message = f"Release {self._config.project.name} v{tag.release} for {tag.track}"
        if result.status == "unchanged":
            message += " (no changes from previous version)"

        created = self._ledger.create_tag(tag, message, result.commit)
        if isinstance(created, Err):
            self._console.error(created.error.pretty())
            return replace(result, status="error", error=created.error)

        if result.status == "unchanged":
            self._console.success(f"{tag} (same commit as {result.old_tag})")
        else:
            self._console.success(f"{tag} (with changes)")
        return replace(result, tag_created=True)

    # ------------------------------------------------------------------
    # Phase 2
    # ------------------------------------------------------------------

    def publish_all(self, tracks: list[str]) -> tuple[PublishResult, ...]:
        self._console.header("Phase 2: publish")
        results: list[PublishResult] = []
        for index, track in enumerate(tracks, 1):
            self._console.header(f"[{index}/{len(tracks)}] {track}")
            results.append(self._publish_if_changed(track))
        return tuple(results)

    def _publish_if_changed(self, track: str) -> PublishResult:
        latest = self._ledger.latest_tag(track)
        if isinstance(latest, Err):
            return PublishResult(track=track, status="error", error=latest.error)
        tag = latest.value
        if tag is None:
            self._console.print("no tag found; skipping", Style.DIM)
            return PublishResult(track=track, status="skipped", reason="no tag found")

        skip_reason = self._skip_reason(tag)
        if isinstance(skip_reason, Err):
            return PublishResult(track=track, status="error", tag=tag, error=skip_reason.error)
        if skip_reason.value is not None:
            self._console.print(f"{skip_reason.value}; skipping", Style.DIM)
            return PublishResult(track=track, status="skipped", tag=tag, reason=skip_reason.value)
        return self._publish_tag(tag)

    def _skip_reason(self, tag: ReleaseTag) -> Result[str | None, ReleaseError]:
        """Why `tag` needs no upload, or None when it must be published."""
        previous = tag.previous()
        if previous is None:
            self._console.info(f"{tag} is the first release of its line")
            return Ok(None)

        exists = self._ledger.tag_exists(previous.name)
        if isinstance(exists, Err):
            return exists
        if not exists.value:
            self._console.info(f"no previous tag {previous}")
            return Ok(None)

        current_commit = self._ledger.commit_of(tag)
        if isinstance(current_commit, Err):
            return current_commit
        previous_commit = self._ledger.commit_of(previous)
        if isinstance(previous_commit, Err):
            return previous_commit

        if current_commit.value == previous_commit.value:
            return Ok(f"no changes from {previous}")
        self._console.info(f"changes since {previous}")
        return Ok(None)

    def _publish_tag(self, tag: ReleaseTag) -> PublishResult:
        ctx = TrackContext(track=tag.track, release=tag.release, variants=self._config.variants)
        try:
            result = self._build_and_upload(ctx)
        except Exception as e:  # noqa: BLE001
            result = PublishResult(
                track=tag.track,
                status="error",
                tag=tag,
                error=ReleaseError(kind="artifact", message=f"publish crashed: {e}"),
            )
        finally:
            self._restore_primary_branch()

        if result.error is not None:
            self._console.error(result.error.pretty())
        return result

    def _build_and_upload(self, ctx: TrackContext) -> PublishResult:
        tag = ctx.tag

        def failed(error: ReleaseError) -> PublishResult:
            return PublishResult(track=ctx.track, status="error", tag=tag, error=error)

        discarded = self._ledger.discard_changes()
        if isinstance(discarded, Err):
            return failed(discarded.error)
        self._console.info(f"checking out {tag}")
        checked_out = self._ledger.checkout(tag.name)
        if isinstance(checked_out, Err):
            return failed(checked_out.error)

        built = self._builder.build(ctx)
        if isinstance(built, Err):
            return failed(built.error)

        for artifact in built.value.artifacts:
            uploaded = self._publisher.publish(ctx, artifact)
            if isinstance(uploaded, Err):
                return failed(uploaded.error)
            if uploaded.value == "duplicate":
                self._console.success(f"{artifact.path.name} already uploaded")
            else:
                self._console.success(f"uploaded {artifact.path.name}")

        return PublishResult(track=ctx.track, status="published", tag=tag)

    def _restore_primary_branch(self) -> None:
        branch = self._config.ledger.primary_branch
        discarded = self._ledger.discard_changes()
        if isinstance(discarded, Err):
            self._console.warning(discarded.error.pretty())
        checked_out = self._ledger.checkout(branch)
        if isinstance(checked_out, Err):
            self._console.warning(f"failed to return to {branch}: {checked_out.error.pretty()}")

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------

    def _check_availability(self) -> Result[None, ReleaseError]:
        url = self._config.catalog.availability_url
        if url is None or self._http is None:
            return Ok(None)
        self._console.info("checking service availability")
        result = check_service_availability(self._http, url, sleep=self._sleep)
        if isinstance(result, Ok):
            self._console.success("services are reachable")
        return result

    def _resolve_tracks(self) -> Result[list[str], ReleaseError]:
        if self._tracks is not None:
            return Ok(list(self._tracks))
        if self._http is None:
            return Err(ReleaseError(kind="config", message="no tracks given and no catalog client"))

        self._console.info("fetching game versions")
        result = list_valid_tracks(
            self._http,
            self._config.catalog.url,
            RetryPolicy.from_config(self._config.retry),
            console=self._console,
            sleep=self._sleep,
        )
        if isinstance(result, Ok):
            self._console.success(f"found {len(result.value)} valid tracks")
        return result

    def _abort(self, error: ReleaseError) -> RunSummary:
        self._console.error(error.pretty())
        return RunSummary(fatal=error)

    def print_summary(self, summary: RunSummary) -> None:
        console = self._console
        console.header("Summary")
        if summary.fatal is not None:
            console.error(summary.fatal.pretty())
            return

        if summary.checks:
            changed = [c for c in summary.checks if c.status in ("new", "changed")]
            unchanged = [c for c in summary.checks if c.status == "unchanged"]
            console.print(f"Tracks checked: {len(summary.checks)}")
            console.print(f"  changed: {len(changed)}", Style.SUCCESS)
            console.print(f"  unchanged: {len(unchanged)}", Style.DIM)
            error_style = Style.ERROR if summary.failed_checks else Style.DIM
            console.print(f"  errors: {len(summary.failed_checks)}", error_style)
            for c in changed:
                console.print(f"  - {c.track} -> {c.new_tag} (publish)")
            for c in unchanged:
                console.print(f"  - {c.track} -> {c.new_tag} (no upload needed)")

        if summary.publishes:
            published = [p for p in summary.publishes if p.status == "published"]
            skipped = [p for p in summary.publishes if p.status == "skipped"]
            console.print(f"Tracks published: {len(published)}/{len(summary.publishes)}")
            for p in published:
                console.print(f"  - {p.track} ({p.tag})", Style.SUCCESS)
            for p in skipped:
                console.print(f"  - {p.track}: {p.reason}", Style.DIM)

        failures = [(c.track, c.error) for c in summary.failed_checks] + [
            (p.track, p.error) for p in summary.failed_publishes
        ]
        if failures or summary.run_errors:
            console.newline()
            console.print("Errors:", Style.ERROR)
            for track, error in failures:
                console.print(f"  {track}: {error.pretty() if error else 'unknown error'}", Style.ERROR)
            for error in summary.run_errors:
                console.print(f"  {error.pretty()}", Style.ERROR)
