"""Revision resolution with bounded deepening of shallow clones."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from .git import GitRunner
from .repository import RepositoryHandle

logger = logging.getLogger(__name__)

INITIAL_DEPTH = 50
MAX_DEEPEN_ATTEMPTS = 3


class UnresolvableRevision(RuntimeError):
    """Raised when a revision cannot be found even after growing history."""

    def __init__(self, ref: str) -> None:
        self.ref = ref
        super().__init__(f"'{ref}' is not a valid revision (branch name, tag name, hash, ...).")


class DeepenStep(str, Enum):
    """Next action to take when a revision is missing from a shallow clone."""

    DEEPEN = "deepen"
    UNSHALLOW = "unshallow"
    GIVE_UP = "give_up"


@dataclass(slots=True)
class DeepenState:
    """History-growing budget shared by all refs of one detection pass."""

    depth: int = INITIAL_DEPTH
    attempts: int = 0
    max_attempts: int = MAX_DEEPEN_ATTEMPTS
    unshallowed: bool = False

    def next_step(self) -> DeepenStep:
        if self.unshallowed:
            return DeepenStep.GIVE_UP
        if self.attempts < self.max_attempts:
            return DeepenStep.DEEPEN
        return DeepenStep.UNSHALLOW

    def record_deepen(self) -> None:
        self.attempts += 1
        self.depth *= 2

    def record_unshallow(self) -> None:
        self.unshallowed = True


class RevisionResolver:
    """Make sure revisions exist locally, deepening shallow history when needed.

    A missing revision in a shallow clone triggers up to ``max_attempts``
    fetches with exponentially growing depth, then a single full unshallow.
    Verification is retried after every step.
    """

    def __init__(
        self,
        runner: GitRunner,
        *,
        initial_depth: int = INITIAL_DEPTH,
        max_attempts: int = MAX_DEEPEN_ATTEMPTS,
    ) -> None:
        self._runner = runner
        self._initial_depth = initial_depth
        self._max_attempts = max_attempts

    def ensure_resolvable(self, repo: RepositoryHandle, refs: Iterable[str]) -> DeepenState:
        """Verify every ref, raising :class:`UnresolvableRevision` for the first one that stays missing."""

        state = DeepenState(depth=self._initial_depth, max_attempts=self._max_attempts)
        for ref in refs:
            while not self._runner.verify_revision(ref, cwd=repo.root_path):
                # A full clone never gains history; a shallow one may become complete.
                if not repo.is_shallow or not self._runner.is_shallow(cwd=repo.root_path):
                    raise UnresolvableRevision(ref)
                step = state.next_step()
                if step is DeepenStep.GIVE_UP:
                    raise UnresolvableRevision(ref)
                self._apply(step, repo, state, ref)
        return state

    def _apply(self, step: DeepenStep, repo: RepositoryHandle, state: DeepenState, ref: str) -> None:
        if step is DeepenStep.DEEPEN:
            logger.info("Revision '%s' not found; deepening shallow history by %d commits", ref, state.depth)
            self._runner.deepen(state.depth, cwd=repo.root_path)
            state.record_deepen()
        else:
            logger.info("Revision '%s' still not found; fetching complete history", ref)
            self._runner.unshallow(cwd=repo.root_path)
            state.record_unshallow()


__all__ = [
    "DeepenState",
    "DeepenStep",
    "INITIAL_DEPTH",
    "MAX_DEEPEN_ATTEMPTS",
    "RevisionResolver",
    "UnresolvableRevision",
]
