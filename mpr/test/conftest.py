from __future__ import annotations

import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path

import pytest

GitRunner = Callable[..., str]


def _git(root: Path, *args: str) -> str:
    proc = subprocess.run(
        ["git", "-C", str(root), *args],
        capture_output=True,
        text=True,
        check=True,
    )
    return proc.stdout.strip()


@pytest.fixture
def git() -> GitRunner:
    """Run a git command in a repository and return its stripped stdout."""
    return _git


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A fresh repository on `main` with one commit and a local identity."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    root = tmp_path / "pack"
    root.mkdir()
    _git(root, "init", "--quiet", "-b", "main")
    _git(root, "config", "user.name", "Release Bot")
    _git(root, "config", "user.email", "bot@example.com")
    _git(root, "config", "commit.gpgsign", "false")
    _git(root, "config", "tag.gpgsign", "false")
    (root / "pack.toml").write_text('name = "Test Pack"\n', encoding="utf-8")
    (root / ".gitignore").write_text("*.mrpack\n", encoding="utf-8")
    _git(root, "add", "-A")
    _git(root, "commit", "--quiet", "-m", "initial")
    return root
