"""Locate or clone the upstream repository for a run."""

from __future__ import annotations

import logging
import shutil
import signal
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator

from .config import DEFAULT_UPSTREAM_URL, ConfigurationError
from .git import GitRunner

logger = logging.getLogger(__name__)

_TERMINATION_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGTERM", "SIGHUP", "SIGQUIT") if hasattr(signal, name)
)


@dataclass(frozen=True, slots=True)
class RepositoryHandle:
    """Working copy used by a run."""

    root_path: Path
    is_temporary: bool
    is_shallow: bool


def _raise_system_exit(signum: int, _frame) -> None:
    raise SystemExit(128 + signum)


@contextmanager
def _exit_on_termination_signals() -> Iterator[None]:
    """Turn termination signals into ``SystemExit`` so ``finally`` blocks run."""

    previous: dict[int, object] = {}
    for signum in _TERMINATION_SIGNALS:
        try:
            previous[signum] = signal.signal(signum, _raise_system_exit)
        except ValueError:  # pragma: no cover - not on the main thread
            break
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)  # type: ignore[arg-type]


class RepositorySource:
    """Reuse a local working copy or clone the upstream into a temporary directory."""

    def __init__(
        self,
        runner: GitRunner,
        *,
        default_url: str = DEFAULT_UPSTREAM_URL,
        tempdir_factory: Callable[[], str] | None = None,
    ) -> None:
        self._runner = runner
        self._default_url = default_url
        self._tempdir_factory = tempdir_factory or (lambda: tempfile.mkdtemp(prefix="upstream-drift-"))

    @contextmanager
    def acquire(
        self,
        explicit_path: Path | None = None,
        remote_url: str | None = None,
    ) -> Iterator[RepositoryHandle]:
        """Yield a :class:`RepositoryHandle`, removing a cloned copy on every exit path."""

        if explicit_path is None and remote_url is None:
            raise ConfigurationError(
                "Missing parameters, please provide either 'upstream_path' pointing to a local "
                "git working copy of the upstream, or 'upstream_git_url' to clone it from."
            )

        if explicit_path is not None:
            candidate = Path(explicit_path).expanduser()
            if self._runner.is_inside_work_tree(candidate):
                root = candidate.resolve()
                yield RepositoryHandle(
                    root_path=root,
                    is_temporary=False,
                    is_shallow=self._runner.is_shallow(cwd=root),
                )
                return
            logger.warning(
                "The provided path does not point to a valid git repository: '%s'. Cloning instead.",
                candidate,
            )

        url = remote_url or self._default_url
        with _exit_on_termination_signals():
            root = Path(self._tempdir_factory())
            try:
                logger.info("Cloning %s into %s", url, root)
                self._runner.clone(url, root)
                yield RepositoryHandle(
                    root_path=root,
                    is_temporary=True,
                    is_shallow=self._runner.is_shallow(cwd=root),
                )
            finally:
                _remove_tree(root)


def _remove_tree(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return
    except OSError as exc:
        logger.warning("Failed to remove temporary directory %s: %s", path, exc)
    else:
        logger.debug("Removed temporary directory %s", path)


__all__ = ["RepositoryHandle", "RepositorySource"]
