"""Drive detection across the tracking table."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable

from .config import ConfigurationError, RunConfig
from .detector import ChangeDetector, DetectionResult
from .git import GitRunner, GitRunnerError
from .repository import RepositoryHandle, RepositorySource
from .resolver import RevisionResolver, UnresolvableRevision
from .tracking import TrackedEntry, TrackingTable

logger = logging.getLogger(__name__)


class ProcessOutcome(str, Enum):
    SUCCESS = "success"
    CHANGES_DETECTED = "changes_detected"
    CONFIGURATION_ERROR = "configuration_error"


class RunState(str, Enum):
    INIT = "init"
    RESOLVING_REPOSITORY = "resolving_repository"
    VERIFYING = "verifying"
    COMPARING = "comparing"
    REPORTING = "reporting"
    TERMINAL = "terminal"


@dataclass(slots=True)
class RunReport:
    """Aggregated outcome of a run."""

    outcome: ProcessOutcome
    results: list[DetectionResult] = field(default_factory=list)
    error: str | None = None

    @property
    def changed(self) -> list[DetectionResult]:
        return [result for result in self.results if result.changed]


ResultCallback = Callable[[DetectionResult], None]
EntryCallback = Callable[[TrackedEntry], None]


class RunOrchestrator:
    """Run change detection for one branch or the whole tracking table."""

    def __init__(
        self,
        runner: GitRunner | None = None,
        *,
        source: RepositorySource | None = None,
        resolver: RevisionResolver | None = None,
        detector: ChangeDetector | None = None,
    ) -> None:
        self._runner = runner
        self._source = source
        self._resolver = resolver
        self._detector = detector
        self.state = RunState.INIT

    def run(
        self,
        config: RunConfig,
        *,
        on_entry: EntryCallback | None = None,
        on_result: ResultCallback | None = None,
    ) -> RunReport:
        """Execute a run, converting fatal errors into a configuration-error report."""

        self._transition(RunState.INIT)
        try:
            results = self._run(config, on_entry=on_entry, on_result=on_result)
        except (ConfigurationError, UnresolvableRevision, GitRunnerError) as exc:
            logger.debug("Run aborted: %s", exc)
            report = RunReport(outcome=ProcessOutcome.CONFIGURATION_ERROR, error=str(exc))
        else:
            self._transition(RunState.REPORTING)
            outcome = (
                ProcessOutcome.CHANGES_DETECTED
                if any(result.changed for result in results)
                else ProcessOutcome.SUCCESS
            )
            report = RunReport(outcome=outcome, results=results)
        self._transition(RunState.TERMINAL)
        return report

    def _run(
        self,
        config: RunConfig,
        *,
        on_entry: EntryCallback | None,
        on_result: ResultCallback | None,
    ) -> list[DetectionResult]:
        if not config.tracking_table.strip():
            raise ConfigurationError(
                "Please provide 'checked_version_per_branch'. If this is the first check, "
                "provide the upstream version the vendored files were copied from."
            )
        table = TrackingTable.parse(config.tracking_table)
        if config.branch is not None:
            entries = [table.entry_for(config.branch)]
        else:
            entries = table.all_entries()
        if not entries:
            raise ConfigurationError("'checked_version_per_branch' does not contain any entries.")

        logger.info("Checking for changes in %s", config.upstream_description)

        runner = self._runner or GitRunner(config.git_path)
        source = self._source or RepositorySource(runner, default_url=config.default_upstream_url)
        resolver = self._resolver or RevisionResolver(runner)
        detector = self._detector or ChangeDetector(runner)

        self._transition(RunState.RESOLVING_REPOSITORY)
        with source.acquire(config.upstream_path, config.upstream_git_url) as repo:
            _validate_watched_paths(repo, config.affected_files)

            results: list[DetectionResult] = []
            for entry in entries:
                if on_entry is not None:
                    on_entry(entry)
                result = self._process(entry, repo, config, resolver, detector)
                results.append(result)
                if on_result is not None:
                    on_result(result)
            return results

    def _process(
        self,
        entry: TrackedEntry,
        repo: RepositoryHandle,
        config: RunConfig,
        resolver: RevisionResolver,
        detector: ChangeDetector,
    ) -> DetectionResult:
        logger.info(
            "Comparing branch '%s' with revision '%s'", entry.branch, entry.last_checked_revision
        )
        self._transition(RunState.VERIFYING)
        resolver.ensure_resolvable(repo, [entry.branch, entry.last_checked_revision])
        self._transition(RunState.COMPARING)
        return detector.detect(
            repo,
            entry.branch,
            entry.last_checked_revision,
            config.affected_files,
            verbose=config.show_diff,
        )

    def _transition(self, state: RunState) -> None:
        logger.debug("Run state %s -> %s", self.state.value, state.value)
        self.state = state


def _validate_watched_paths(repo: RepositoryHandle, paths: tuple[str, ...]) -> None:
    for relative in paths:
        if not (repo.root_path / Path(relative)).exists():
            raise ConfigurationError(
                f"'{relative}' does not exist! Check if you set 'affected_files' correctly."
            )


__all__ = [
    "ProcessOutcome",
    "RunOrchestrator",
    "RunReport",
    "RunState",
]
