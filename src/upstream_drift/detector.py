"""Change detection between a last checked revision and a branch tip."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Sequence

from .git import GitRunner
from .repository import RepositoryHandle

logger = logging.getLogger(__name__)


class DetectionStatus(str, Enum):
    UNCHANGED = "unchanged"
    STALE_POINTER = "unchanged_stale_pointer"
    CHANGED = "changed"


@dataclass(frozen=True, slots=True)
class DetectionResult:
    """Outcome of comparing one tracked entry."""

    branch: str
    last_checked: str

    status = DetectionStatus.UNCHANGED

    @property
    def changed(self) -> bool:
        return self.status is DetectionStatus.CHANGED


@dataclass(frozen=True, slots=True)
class Unchanged(DetectionResult):
    """Branch and last checked revision are the same object."""


@dataclass(frozen=True, slots=True)
class UnchangedStalePointer(DetectionResult):
    """Branch moved on, but none of the watched paths differ."""

    current_tip: str
    latest_version: str

    status = DetectionStatus.STALE_POINTER


@dataclass(frozen=True, slots=True)
class Changed(DetectionResult):
    """Watched paths differ between the last checked revision and the branch."""

    diff_summary: str
    latest_version: str

    status = DetectionStatus.CHANGED


class ChangeDetector:
    """Classify the difference of watched paths between two revisions."""

    def __init__(self, runner: GitRunner) -> None:
        self._runner = runner

    def detect(
        self,
        repo: RepositoryHandle,
        branch: str,
        last_checked: str,
        paths: Sequence[str],
        *,
        verbose: bool = False,
    ) -> DetectionResult:
        root = repo.root_path
        if self._runner.has_diff(last_checked, branch, paths, cwd=root):
            summary = self._runner.diff(last_checked, branch, paths, cwd=root, full=verbose)
            return Changed(
                branch=branch,
                last_checked=last_checked,
                diff_summary=summary,
                latest_version=self._runner.describe(branch, cwd=root),
            )

        tip = self._identity(branch, root)
        if self._identity(last_checked, root) == tip:
            return Unchanged(branch=branch, last_checked=last_checked)

        logger.warning(
            "Branch '%s' moved to %s without touching watched paths; "
            "update 'checked_version_per_branch' for it",
            branch,
            tip,
        )
        return UnchangedStalePointer(
            branch=branch,
            last_checked=last_checked,
            current_tip=tip,
            latest_version=self._runner.describe(branch, cwd=root),
        )

    def _identity(self, ref: str, root: Path) -> str:
        # Peel tags so an annotated tag and the commit it points to compare equal.
        return self._runner.peel_commit(ref, cwd=root) or self._runner.rev_parse(ref, cwd=root)


__all__ = [
    "ChangeDetector",
    "Changed",
    "DetectionResult",
    "DetectionStatus",
    "Unchanged",
    "UnchangedStalePointer",
]
