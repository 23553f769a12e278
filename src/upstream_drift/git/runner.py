"""Synchronous runner for the git CLI."""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Sequence

from .utils import sanitize_environment

logger = logging.getLogger(__name__)


class GitRunnerError(RuntimeError):
    """Base class for git runner errors."""


class GitNotFoundError(GitRunnerError):
    """Raised when the git executable cannot be located."""


class GitCommandError(GitRunnerError):
    """Raised when a git command exits with an unexpected status."""

    def __init__(self, result: "GitExecutionResult") -> None:
        self.result = result
        detail = result.stderr.strip() or result.stdout.strip() or "no output"
        super().__init__(
            f"git command failed: {' '.join(result.args)}\nExit code {result.returncode}: {detail}"
        )


@dataclass(slots=True)
class GitExecutionResult:
    """Holds the outcome of a git invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GitRunner:
    """Execute git commands against a working directory."""

    def __init__(self, executable: Path | None = None) -> None:
        self._executable_path = self._resolve_executable(executable)

    @staticmethod
    def _resolve_executable(explicit: Path | None) -> Path:
        if explicit is not None:
            candidate = Path(explicit)
            if candidate.exists() and candidate.is_file():
                return candidate
            raise GitNotFoundError(f"git executable not found at {candidate}")

        binary = shutil.which("git")
        if binary is None:
            raise GitNotFoundError("git executable not found on PATH")
        return Path(binary)

    @property
    def executable(self) -> Path:
        return self._executable_path

    def run(self, *args: str, cwd: Path) -> GitExecutionResult:
        """Run ``git <args>`` in *cwd* and return the result whatever the exit code."""

        return self._invoke(*args, cwd=cwd)

    def check(self, *args: str, cwd: Path) -> GitExecutionResult:
        """Run ``git <args>`` in *cwd*, raising :class:`GitCommandError` on failure."""

        result = self._invoke(*args, cwd=cwd)
        if not result.ok:
            raise GitCommandError(result)
        return result

    # Operations used by the detection engine.

    def is_inside_work_tree(self, path: Path) -> bool:
        if not path.is_dir():
            return False
        result = self.run("rev-parse", "--is-inside-work-tree", cwd=path)
        return result.ok and result.stdout.strip() == "true"

    def clone(self, url: str, destination: Path) -> None:
        self.check("clone", url, str(destination), cwd=destination.parent)

    def verify_revision(self, ref: str, *, cwd: Path) -> bool:
        result = self.run("rev-parse", "--quiet", "--verify", f"{ref}^{{object}}", cwd=cwd)
        return result.ok

    def is_shallow(self, *, cwd: Path) -> bool:
        result = self.check("rev-parse", "--is-shallow-repository", cwd=cwd)
        return result.stdout.strip() == "true"

    def deepen(self, depth: int, *, cwd: Path) -> None:
        self.check("fetch", "--quiet", f"--deepen={depth}", cwd=cwd)

    def unshallow(self, *, cwd: Path) -> None:
        self.check("fetch", "--quiet", "--unshallow", cwd=cwd)

    def has_diff(self, base: str, target: str, paths: Sequence[str], *, cwd: Path) -> bool:
        result = self.run("diff", "--quiet", base, target, "--", *_pathspec(paths), cwd=cwd)
        if result.returncode == 0:
            return False
        if result.returncode == 1:
            return True
        raise GitCommandError(result)

    def diff(
        self,
        base: str,
        target: str,
        paths: Sequence[str],
        *,
        cwd: Path,
        full: bool = False,
    ) -> str:
        flags = [] if full else ["--compact-summary"]
        result = self.check(
            "--no-pager", "diff", *flags, base, target, "--", *_pathspec(paths), cwd=cwd
        )
        return result.stdout

    def describe(self, ref: str, *, cwd: Path) -> str:
        return self.check("describe", "--always", "--tags", "--long", ref, cwd=cwd).stdout.strip()

    def rev_parse(self, ref: str, *, cwd: Path) -> str:
        return self.check("rev-parse", ref, cwd=cwd).stdout.strip()

    def peel_commit(self, ref: str, *, cwd: Path) -> str | None:
        """Return the commit *ref* points to, or ``None`` for trees and blobs."""

        result = self.run("rev-parse", "--quiet", "--verify", f"{ref}^{{commit}}", cwd=cwd)
        return result.stdout.strip() if result.ok else None

    def _invoke(self, *args: str, cwd: Path) -> GitExecutionResult:
        cmd = [str(self._executable_path), *args]
        logger.debug("Running %s in %s", " ".join(cmd), cwd)
        process = subprocess.run(
            cmd,
            cwd=str(cwd),
            stdin=subprocess.DEVNULL,
            capture_output=True,
            env=sanitize_environment(),
        )
        stdout = process.stdout.decode("utf-8", errors="replace")
        stderr = process.stderr.decode("utf-8", errors="replace")
        return GitExecutionResult(args=tuple(cmd), returncode=process.returncode, stdout=stdout, stderr=stderr)


def _pathspec(paths: Sequence[str]) -> list[str]:
    return list(paths) or ["."]


class FakeGitRunner(GitRunner):
    """Test double that records git invocations and replays scripted results.

    ``handler`` receives the argument tuple and returns a result; when it is
    not given, queued ``responses`` are returned in order, falling back to an
    empty successful result.
    """

    def __init__(  # type: ignore[override]
        self,
        responses: Iterable[GitExecutionResult] | None = None,
        *,
        handler: Callable[[tuple[str, ...]], GitExecutionResult] | None = None,
    ) -> None:
        self._responses = list(responses or [])
        self._handler = handler
        self._invocations: list[tuple[str, ...]] = []
        self._executable_path = Path("/tmp/fake-git")

    def _invoke(self, *args: str, cwd: Path) -> GitExecutionResult:  # type: ignore[override]
        self._invocations.append(tuple(args))
        if self._handler is not None:
            return self._handler(tuple(args))
        if self._responses:
            return self._responses.pop(0)
        return GitExecutionResult(args=tuple(args), returncode=0, stdout="", stderr="")

    @property
    def invocations(self) -> list[tuple[str, ...]]:
        return self._invocations
