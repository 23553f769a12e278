from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path

import pytest

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

_GIT_IDENTITY = {
    "GIT_AUTHOR_NAME": "Upstream Dev",
    "GIT_AUTHOR_EMAIL": "upstream@example.com",
    "GIT_COMMITTER_NAME": "Upstream Dev",
    "GIT_COMMITTER_EMAIL": "upstream@example.com",
}


def git(cwd: Path, *args: str) -> str:
    env = {**os.environ, **_GIT_IDENTITY}
    process = subprocess.run(
        ["git", "-c", "commit.gpgsign=false", "-c", "tag.gpgsign=false", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        check=True,
        env=env,
    )
    return process.stdout.strip()


class UpstreamRepo:
    """Small throwaway upstream repository."""

    def __init__(self, path: Path) -> None:
        self.path = path
        path.mkdir(parents=True)
        git(path, "init", "--quiet")
        git(path, "symbolic-ref", "HEAD", "refs/heads/main")

    def commit(self, files: dict[str, str], message: str = "update") -> str:
        for relative, content in files.items():
            target = self.path / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
            git(self.path, "add", relative)
        git(self.path, "commit", "--quiet", "-m", message)
        return self.head()

    def tag(self, name: str, *, annotated: bool = False) -> None:
        if annotated:
            git(self.path, "tag", "-a", name, "-m", name)
        else:
            git(self.path, "tag", name)

    def branch(self, name: str, start: str = "HEAD") -> None:
        git(self.path, "branch", name, start)

    def head(self) -> str:
        return git(self.path, "rev-parse", "HEAD")


@pytest.fixture
def upstream(tmp_path: Path) -> UpstreamRepo:
    repo = UpstreamRepo(tmp_path / "upstream")
    repo.commit({"lib/foo.php": "<?php // v1\n", "README.md": "# Upstream\n"}, "initial")
    repo.tag("v1.0")
    return repo
