"""Release ledger backed by git tags.

Releases are annotated tags named `{track}_{M.m.p}`; each is bound to
exactly one commit, and the snapshot persisted in that commit is the record
of what was released. Historical snapshots are read with `git show`, so the
working tree is never touched to inspect the past.

Usage:
    ledger = Ledger(Path("/path/to/pack"))

    match ledger.latest_tag("1.21.10"):
        case Ok(None):
            print("never released")
        case Ok(tag):
            print(f"latest: {tag}")
        case Err(e):
            print(f"git failed: {e.message}")
"""

from __future__ import annotations

from pathlib import Path

from mpr.core.result import Err, Ok, Result
from mpr.platform.process import ProcessError
from mpr.platform.process import run as run_process
from mpr.release.errors import ReleaseError, ReleaseErrorKind
from mpr.release.tags import ReleaseTag, parse_tag, tag_pattern
from mpr.release.version import ZERO_RELEASE, ReleaseVersion

GIT_TIMEOUT_SECONDS = 30.0
GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0

__all__ = [
    "GIT_NETWORK_TIMEOUT_SECONDS",
    "GIT_TIMEOUT_SECONDS",
    "Ledger",
]


def _git_error(
    error: ProcessError,
    message: str,
    *,
    kind: ReleaseErrorKind = "ledger",
) -> ReleaseError:
    return ReleaseError(kind=kind, message=message, hint=error.detail)


class Ledger:
    """Tag store for one pack repository.

    Every method runs one or two git subprocesses and returns a Result;
    nothing is retried.

    Attributes:
        root: Repository root (containing .git)
        remote: Remote that tags are pushed to
    """

    def __init__(self, root: Path, remote: str = "origin") -> None:
        self.root = root
        self.remote = remote

    def exists(self) -> bool:
        return (self.root / ".git").exists()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_tags(self, pattern: str = "*") -> Result[list[str], ReleaseError]:
        result = self._run(["tag", "-l", pattern])
        match result:
            case Err(e):
                return Err(_git_error(e, "git tag -l failed"))
            case Ok(stdout):
                return Ok([line.strip() for line in stdout.splitlines() if line.strip()])

    def latest_tag(self, track: str) -> Result[ReleaseTag | None, ReleaseError]:
        """Highest release tag of `track`, compared numerically; None if never released."""
        names = self.list_tags(tag_pattern(track))
        if isinstance(names, Err):
            return names

        tags = [t for t in (parse_tag(n) for n in names.value) if t is not None and t.track == track]
        if not tags:
            return Ok(None)
        return Ok(max(tags, key=lambda t: t.release))

    def highest_global_release(self) -> Result[ReleaseVersion, ReleaseError]:
        """Maximum release version across every track (0.0.0 on an empty ledger)."""
        names = self.list_tags()
        if isinstance(names, Err):
            return names

        releases = [t.release for t in (parse_tag(n) for n in names.value) if t is not None]
        return Ok(max(releases, default=ZERO_RELEASE))

    def tag_exists(self, name: str) -> Result[bool, ReleaseError]:
        names = self.list_tags(name)
        if isinstance(names, Err):
            return names
        return Ok(name in names.value)

    def commit_of(self, tag: ReleaseTag | str) -> Result[str, ReleaseError]:
        """Commit a tag is bound to (annotated tags are peeled)."""
        name = str(tag)
        result = self._run(["rev-parse", "--verify", "--quiet", f"refs/tags/{name}^{{commit}}"])
        match result:
            case Err(e):
                return Err(_git_error(e, f"tag not found: {name}"))
            case Ok(stdout):
                return Ok(stdout.strip())

    def read_file_at(self, tag: ReleaseTag | str, path: str) -> Result[str, ReleaseError]:
        """Contents of `path` in the commit bound to `tag`, without a checkout."""
        name = str(tag)
        result = self._run(["show", f"{name}:{path}"])
        match result:
            case Err(e):
                return Err(
                    ReleaseError(
                        kind="not_found",
                        message=f"{path} not found at {name}",
                        hint=e.detail,
                    )
                )
            case Ok(stdout):
                return Ok(stdout)

    def head_commit(self) -> Result[str, ReleaseError]:
        result = self._run(["rev-parse", "HEAD"])
        match result:
            case Err(e):
                return Err(_git_error(e, "cannot resolve HEAD"))
            case Ok(stdout):
                return Ok(stdout.strip())

    def current_branch(self) -> str | None:
        """Current branch name; None on a detached HEAD or error."""
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"])
        match result:
            case Ok(stdout):
                branch = stdout.strip()
                return None if branch == "HEAD" else branch
            case Err(_):
                return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_tag(
        self,
        tag: ReleaseTag | str,
        message: str,
        at_commit: str | None = None,
    ) -> Result[None, ReleaseError]:
        """Create an annotated tag at `at_commit`, or HEAD when omitted."""
        name = str(tag)
        if parse_tag(name) is None:
            return Err(
                ReleaseError(
                    kind="ledger",
                    message=f"invalid tag name: {name}",
                    hint="Expected {track}_{major}.{minor}.{patch}",
                )
            )

        exists = self.tag_exists(name)
        if isinstance(exists, Err):
            return exists
        if exists.value:
            return Err(ReleaseError(kind="tag_exists", message=f"tag already exists: {name}"))

        cmd = ["tag", "-a", name, "-m", message]
        if at_commit is not None:
            cmd.append(at_commit)
        result = self._run(cmd)
        if isinstance(result, Err):
            return Err(_git_error(result.error, f"failed to create tag {name}"))
        return Ok(None)

    def commit_all(self, message: str) -> Result[str, ReleaseError]:
        """Stage the whole working tree and commit it; returns the new commit.

        The commit is created even when nothing changed, so every run that
        mints a changed release binds it to a commit of its own.
        """
        add = self._run(["add", "-A"])
        if isinstance(add, Err):
            return Err(_git_error(add.error, "git add failed"))

        commit = self._run(["commit", "--allow-empty", "-m", message])
        if isinstance(commit, Err):
            return Err(
                ReleaseError(
                    kind="ledger",
                    message="git commit failed",
                    hint=commit.error.detail or "Configure git user.name/user.email, then retry.",
                )
            )
        return self.head_commit()

    def checkout(self, ref: str) -> Result[None, ReleaseError]:
        result = self._run(["checkout", "--quiet", ref])
        if isinstance(result, Err):
            return Err(_git_error(result.error, f"git checkout {ref} failed"))
        return Ok(None)

    def discard_changes(self) -> Result[None, ReleaseError]:
        """Drop modifications to tracked files; untracked files are left alone."""
        reset = self._run(["reset", "--hard", "--quiet"])
        if isinstance(reset, Err):
            return Err(_git_error(reset.error, "git reset --hard failed"))
        return Ok(None)

    def push_tag(self, name: str) -> Result[None, ReleaseError]:
        result = self._run(["push", self.remote, f"refs/tags/{name}"])
        if isinstance(result, Err):
            return Err(_git_error(result.error, f"failed to push tag {name}", kind="network"))
        return Ok(None)

    def push_tags(self) -> Result[None, ReleaseError]:
        result = self._run(["push", self.remote, "--tags"])
        if isinstance(result, Err):
            return Err(_git_error(result.error, f"failed to push tags to {self.remote}", kind="network"))
        return Ok(None)

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        """Run a git command in this repository."""
        command = args[0] if args else ""
        timeout = (
            GIT_NETWORK_TIMEOUT_SECONDS
            if command in {"fetch", "pull", "push", "clone"}
            else GIT_TIMEOUT_SECONDS
        )
        return run_process(["git", "-C", str(self.root), *args], cwd=self.root, timeout=timeout)
