from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from mpr.core.result import Err, Ok
from mpr.git.ledger import Ledger
from mpr.output.console import MockConsole
from mpr.release.detector import differs, load_snapshot_at, needs_release
from mpr.release.snapshot import (
    AlternativeAttempt,
    AlternativeInstalledItem,
    FailedItem,
    InstallationSnapshot,
    SuccessfulItem,
    write_snapshot,
)

GitRunner = Callable[..., str]

SNAPSHOT_PATH = "state/1.21.json"


def _snap(*ids: str, failed: tuple[str, ...] = ()) -> InstallationSnapshot:
    return InstallationSnapshot.create(
        successful=[SuccessfulItem(i, "optimization") for i in ids],
        failed=[FailedItem(i, "useful") for i in failed],
    )


def _release(git: GitRunner, root: Path, snapshot: InstallationSnapshot, tag: str) -> None:
    write_snapshot(root / SNAPSHOT_PATH, snapshot)
    git(root, "add", "-A")
    git(root, "commit", "--quiet", "-m", f"release {tag}")
    git(root, "tag", "-a", tag, "-m", tag)


class TestDiffers:
    def test_identical(self) -> None:
        assert not differs(_snap("sodium", "lithium"), _snap("sodium", "lithium"))

    def test_order_is_irrelevant(self) -> None:
        assert not differs(_snap("sodium", "lithium"), _snap("lithium", "sodium"))

    def test_symmetric(self) -> None:
        a = _snap("sodium")
        b = _snap("sodium", "lithium")
        assert differs(a, b)
        assert differs(b, a)

    def test_item_moved_between_groups(self) -> None:
        assert differs(_snap("sodium", "lithium"), _snap("sodium", failed=("lithium",)))

    def test_category_change(self) -> None:
        old = InstallationSnapshot.create(successful=[SuccessfulItem("sodium", "optimization")])
        new = InstallationSnapshot.create(successful=[SuccessfulItem("sodium", "visual")])
        assert differs(old, new)

    def test_same_size_different_identifier(self) -> None:
        assert differs(_snap("sodium"), _snap("lithium"))

    def test_installed_fallback_matters(self) -> None:
        old = InstallationSnapshot.create(
            alternative_installed=[AlternativeInstalledItem("iris", "visual", "oculus")]
        )
        new = InstallationSnapshot.create(
            alternative_installed=[AlternativeInstalledItem("iris", "visual", "canvas")]
        )
        assert differs(old, new)

    def test_tried_alternatives_do_not_matter(self) -> None:
        old = InstallationSnapshot.create(
            failed=[FailedItem("xaero", "useful", (AlternativeAttempt("journeymap"),))]
        )
        new = InstallationSnapshot.create(failed=[FailedItem("xaero", "useful")])
        assert not differs(old, new)

    def test_empty_snapshots(self) -> None:
        assert not differs(InstallationSnapshot(), InstallationSnapshot())


class TestNeedsRelease:
    def test_new_track(self, git_repo: Path) -> None:
        result = needs_release(Ledger(git_repo), "1.21", _snap("sodium"), SNAPSHOT_PATH)
        assert result == Ok(True)

    def test_unchanged(self, git_repo: Path, git: GitRunner) -> None:
        _release(git, git_repo, _snap("sodium"), "1.21_0.1.0")

        result = needs_release(Ledger(git_repo), "1.21", _snap("sodium"), SNAPSHOT_PATH)
        assert result == Ok(False)

    def test_changed(self, git_repo: Path, git: GitRunner) -> None:
        _release(git, git_repo, _snap("sodium"), "1.21_0.1.0")

        result = needs_release(Ledger(git_repo), "1.21", _snap("sodium", "lithium"), SNAPSHOT_PATH)
        assert result == Ok(True)

    def test_compares_against_latest_tag(self, git_repo: Path, git: GitRunner) -> None:
        _release(git, git_repo, _snap("sodium"), "1.21_0.1.0")
        _release(git, git_repo, _snap("sodium", "lithium"), "1.21_0.1.1")

        ledger = Ledger(git_repo)
        assert needs_release(ledger, "1.21", _snap("sodium", "lithium"), SNAPSHOT_PATH) == Ok(False)

    def test_missing_snapshot_counts_as_change(self, git_repo: Path, git: GitRunner) -> None:
        git(git_repo, "tag", "-a", "1.21_0.1.0", "-m", "no snapshot")
        console = MockConsole()

        result = needs_release(
            Ledger(git_repo), "1.21", _snap("sodium"), SNAPSHOT_PATH, console=console
        )

        assert result == Ok(True)
        assert console.has_warning()
        assert console.find("treating 1.21 as changed")

    def test_malformed_snapshot_counts_as_change(self, git_repo: Path, git: GitRunner) -> None:
        path = git_repo / SNAPSHOT_PATH
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")
        git(git_repo, "add", "-A")
        git(git_repo, "commit", "--quiet", "-m", "broken")
        git(git_repo, "tag", "-a", "1.21_0.1.0", "-m", "broken")

        result = needs_release(Ledger(git_repo), "1.21", _snap("sodium"), SNAPSHOT_PATH)
        assert result == Ok(True)

    def test_load_snapshot_at_reports_kind(self, git_repo: Path, git: GitRunner) -> None:
        git(git_repo, "tag", "-a", "1.21_0.1.0", "-m", "x")
        tag = Ledger(git_repo).latest_tag("1.21").unwrap()
        assert tag is not None

        result = load_snapshot_at(Ledger(git_repo), tag, SNAPSHOT_PATH)

        assert isinstance(result, Err)
        assert result.error.kind == "snapshot_load"
