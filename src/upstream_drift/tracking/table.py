"""Parsing and lookup for the branch tracking table."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from ..config import ConfigurationError
from .models import TrackedEntry

logger = logging.getLogger(__name__)


class UnknownBranch(ConfigurationError):
    """Raised when a requested branch has no entry in the tracking table."""

    def __init__(self, branch: str) -> None:
        self.branch = branch
        super().__init__(f"There is no entry for branch '{branch}' in 'checked_version_per_branch'.")


class TrackingTable:
    """Line-oriented mapping of branch to last checked revision.

    Each non-blank line holds a branch token and a revision token separated
    by blank space. When a branch appears on several lines the first line
    wins and a warning is logged.
    """

    def __init__(self, entries: list[TrackedEntry]) -> None:
        self._entries = list(entries)

    @classmethod
    def parse(cls, text: str) -> "TrackingTable":
        entries: list[TrackedEntry] = []
        seen: set[str] = set()

        for number, line in enumerate(text.splitlines(), start=1):
            tokens = line.split()
            if not tokens:
                continue
            if len(tokens) != 2:
                raise ConfigurationError(
                    f"Line {number} of 'checked_version_per_branch' must hold a branch and a revision: {line.strip()!r}"
                )
            try:
                entry = TrackedEntry(branch=tokens[0], last_checked_revision=tokens[1])
            except ValidationError as exc:
                raise ConfigurationError(
                    f"Line {number} of 'checked_version_per_branch' is invalid: {exc}"
                ) from exc

            if entry.branch in seen:
                logger.warning(
                    "Branch '%s' is listed more than once in 'checked_version_per_branch'; using the first entry",
                    entry.branch,
                )
                continue
            seen.add(entry.branch)
            entries.append(entry)

        return cls(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def all_entries(self) -> list[TrackedEntry]:
        """Return every entry in table order."""

        return list(self._entries)

    def lookup(self, branch: str) -> str:
        """Return the last checked revision for *branch*."""

        wanted = branch.strip()
        for entry in self._entries:
            if entry.branch == wanted:
                return entry.last_checked_revision
        raise UnknownBranch(wanted)

    def entry_for(self, branch: str) -> TrackedEntry:
        return TrackedEntry(branch=branch.strip(), last_checked_revision=self.lookup(branch))


__all__ = ["TrackingTable", "UnknownBranch"]
