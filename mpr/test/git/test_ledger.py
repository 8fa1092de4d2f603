"""Tests for mpr.git.ledger against real repositories."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from mpr.core.result import Err, Ok
from mpr.git.ledger import Ledger
from mpr.release.tags import ReleaseTag
from mpr.release.version import ZERO_RELEASE, ReleaseVersion

GitRunner = Callable[..., str]


def _tag(git: GitRunner, root: Path, *names: str) -> None:
    for name in names:
        git(root, "tag", "-a", name, "-m", name)


class TestQueries:
    def test_exists(self, git_repo: Path, tmp_path: Path) -> None:
        assert Ledger(git_repo).exists()
        assert not Ledger(tmp_path).exists()

    def test_latest_tag_none_when_unreleased(self, git_repo: Path) -> None:
        assert Ledger(git_repo).latest_tag("1.21").unwrap() is None

    def test_latest_tag_is_numeric(self, git_repo: Path, git: GitRunner) -> None:
        _tag(git, git_repo, "1.21_0.1.2", "1.21_0.1.10", "1.21_0.1.9")

        latest = Ledger(git_repo).latest_tag("1.21").unwrap()

        assert latest == ReleaseTag("1.21", ReleaseVersion(0, 1, 10))

    def test_latest_tag_ignores_other_tracks_and_junk(self, git_repo: Path, git: GitRunner) -> None:
        _tag(git, git_repo, "1.21_0.1.0", "1.21.10_0.1.7", "1.21_beta", "v1.0.0")

        assert Ledger(git_repo).latest_tag("1.21").unwrap() == ReleaseTag(
            "1.21", ReleaseVersion(0, 1, 0)
        )
        assert Ledger(git_repo).latest_tag("1.21.10").unwrap() == ReleaseTag(
            "1.21.10", ReleaseVersion(0, 1, 7)
        )

    def test_highest_global_release(self, git_repo: Path, git: GitRunner) -> None:
        ledger = Ledger(git_repo)
        assert ledger.highest_global_release().unwrap() == ZERO_RELEASE

        _tag(git, git_repo, "1.20.1_0.1.3", "1.21_0.1.11", "1.14_0.1.5", "nightly")

        assert ledger.highest_global_release().unwrap() == ReleaseVersion(0, 1, 11)

    def test_commit_of_peels_annotated_tag(self, git_repo: Path, git: GitRunner) -> None:
        _tag(git, git_repo, "1.21_0.1.0")
        head = git(git_repo, "rev-parse", "HEAD")

        assert Ledger(git_repo).commit_of("1.21_0.1.0").unwrap() == head

    def test_commit_of_missing_tag(self, git_repo: Path) -> None:
        result = Ledger(git_repo).commit_of("1.21_0.9.9")
        assert isinstance(result, Err)
        assert result.error.kind == "ledger"

    def test_read_file_at(self, git_repo: Path, git: GitRunner) -> None:
        state = git_repo / "state"
        state.mkdir()
        (state / "1.21.json").write_text("v1\n", encoding="utf-8")
        git(git_repo, "add", "-A")
        git(git_repo, "commit", "--quiet", "-m", "v1")
        _tag(git, git_repo, "1.21_0.1.0")
        (state / "1.21.json").write_text("v2\n", encoding="utf-8")

        ledger = Ledger(git_repo)
        assert ledger.read_file_at("1.21_0.1.0", "state/1.21.json").unwrap() == "v1\n"

        missing = ledger.read_file_at("1.21_0.1.0", "state/1.20.json")
        assert isinstance(missing, Err)
        assert missing.error.kind == "not_found"

    def test_current_branch(self, git_repo: Path, git: GitRunner) -> None:
        ledger = Ledger(git_repo)
        assert ledger.current_branch() == "main"

        git(git_repo, "checkout", "--quiet", "--detach")
        assert ledger.current_branch() is None

    def test_not_a_repository(self, tmp_path: Path) -> None:
        result = Ledger(tmp_path).list_tags()
        assert isinstance(result, Err)
        assert result.error.kind == "ledger"


class TestMutations:
    def test_create_tag_at_head(self, git_repo: Path, git: GitRunner) -> None:
        ledger = Ledger(git_repo)
        tag = ReleaseTag("1.21", ReleaseVersion(0, 1, 0))

        assert isinstance(ledger.create_tag(tag, "Release 0.1.0"), Ok)

        assert ledger.tag_exists("1.21_0.1.0").unwrap()
        assert git(git_repo, "cat-file", "-t", "1.21_0.1.0") == "tag"
        assert ledger.commit_of(tag).unwrap() == git(git_repo, "rev-parse", "HEAD")

    def test_create_tag_at_commit(self, git_repo: Path, git: GitRunner) -> None:
        first = git(git_repo, "rev-parse", "HEAD")
        git(git_repo, "commit", "--quiet", "--allow-empty", "-m", "second")
        ledger = Ledger(git_repo)

        assert isinstance(ledger.create_tag("1.21_0.1.0", "msg", at_commit=first), Ok)
        assert ledger.commit_of("1.21_0.1.0").unwrap() == first

    def test_create_tag_rejects_invalid_name(self, git_repo: Path) -> None:
        result = Ledger(git_repo).create_tag("1.21_v0.1.0", "msg")
        assert isinstance(result, Err)
        assert result.error.kind == "ledger"
        assert "invalid tag name" in result.error.message

    def test_create_tag_refuses_to_overwrite(self, git_repo: Path, git: GitRunner) -> None:
        _tag(git, git_repo, "1.21_0.1.0")
        result = Ledger(git_repo).create_tag("1.21_0.1.0", "again")
        assert isinstance(result, Err)
        assert result.error.kind == "tag_exists"

    def test_commit_all_commits_even_when_clean(self, git_repo: Path, git: GitRunner) -> None:
        before = git(git_repo, "rev-parse", "HEAD")
        ledger = Ledger(git_repo)

        (git_repo / "new.txt").write_text("x", encoding="utf-8")
        first = ledger.commit_all("Add file").unwrap()
        second = ledger.commit_all("Nothing changed").unwrap()

        assert len({before, first, second}) == 3
        assert git(git_repo, "status", "--porcelain") == ""

    def test_discard_changes_and_checkout(self, git_repo: Path, git: GitRunner) -> None:
        _tag(git, git_repo, "1.21_0.1.0")
        (git_repo / "pack.toml").write_text("changed", encoding="utf-8")
        (git_repo / "untracked").mkdir()
        (git_repo / "untracked" / "f.txt").write_text("x", encoding="utf-8")
        ledger = Ledger(git_repo)

        assert isinstance(ledger.discard_changes(), Ok)
        assert git(git_repo, "status", "--porcelain") == "?? untracked/"
        assert (git_repo / "pack.toml").read_text(encoding="utf-8") == 'name = "Test Pack"\n'
        assert (git_repo / "untracked" / "f.txt").exists()

        assert isinstance(ledger.checkout("1.21_0.1.0"), Ok)
        assert ledger.current_branch() is None
        assert isinstance(ledger.checkout("main"), Ok)
        assert ledger.current_branch() == "main"

    def test_push_tags(self, git_repo: Path, git: GitRunner, tmp_path: Path) -> None:
        remote = tmp_path / "remote.git"
        git(tmp_path, "init", "--quiet", "--bare", str(remote))
        git(git_repo, "remote", "add", "origin", str(remote))
        _tag(git, git_repo, "1.21_0.1.0", "1.20.1_0.1.0")

        assert isinstance(Ledger(git_repo).push_tags(), Ok)

        assert set(git(remote, "tag", "-l").splitlines()) == {"1.21_0.1.0", "1.20.1_0.1.0"}

    def test_push_failure_is_network_error(self, git_repo: Path) -> None:
        result = Ledger(git_repo, remote="nowhere").push_tags()
        assert isinstance(result, Err)
        assert result.error.kind == "network"
