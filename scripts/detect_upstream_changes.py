"""Detect upstream changes to vendored files.

Compares the watched files of an upstream repository between the revision
recorded in ``checked_version_per_branch`` and the current tip of each
tracked branch.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from upstream_drift.config import (
    ConfigurationError,
    DriftSettings,
    RunConfig,
    build_run_config,
    load_config_file,
)
from upstream_drift.detector import Changed, DetectionResult, UnchangedStalePointer
from upstream_drift.orchestrator import ProcessOutcome, RunOrchestrator
from upstream_drift.tracking import TrackedEntry

EXIT_CODES = {
    ProcessOutcome.SUCCESS: 0,
    ProcessOutcome.CHANGES_DETECTED: 1,
    ProcessOutcome.CONFIGURATION_ERROR: 2,
}


def configure_logging(level: str) -> None:
    """Configure root logging for the command line run."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def render_entry(entry: TrackedEntry) -> str:
    return f"● Comparing branch '{entry.branch}' with revision '{entry.last_checked_revision}'."


def render_result(result: DetectionResult) -> str:
    lines: list[str] = []
    if isinstance(result, Changed):
        lines.extend(["", result.diff_summary.rstrip("\n"), ""])
        lines.append(
            "There have been changes to the upstream files. "
            "Make sure to update the affected files if necessary."
        )
        lines.append("Also update 'checked_version_per_branch'.")
        lines.append(f"The latest version for branch '{result.branch}' is: {result.latest_version}")
    else:
        lines.append("✓ No changes detected, everything is up-to-date.")
        if isinstance(result, UnchangedStalePointer):
            lines.append("Don't forget to update 'checked_version_per_branch', though.")
            lines.append(
                f"The latest version for branch '{result.branch}' is: {result.latest_version}"
            )
    lines.append("")
    return "\n".join(lines)


def load_run_config(args: argparse.Namespace) -> RunConfig:
    try:
        settings = DriftSettings()
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid environment settings: {exc}") from exc
    file_values = load_config_file(Path(args.env_file)) if args.env_file else None
    return build_run_config(
        settings,
        file_values,
        branch=args.branch,
        show_diff=args.diff or None,
        upstream_path=args.upstream_path,
        upstream_git_url=args.upstream_url,
        affected_files=args.affected_file,
    )


def detect(args: argparse.Namespace, *, orchestrator: RunOrchestrator | None = None) -> int:
    try:
        config = load_run_config(args)
    except ConfigurationError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_CODES[ProcessOutcome.CONFIGURATION_ERROR]

    orchestrator = orchestrator or RunOrchestrator()
    report = orchestrator.run(
        config,
        on_entry=lambda entry: print(render_entry(entry)),
        on_result=lambda result: print(render_result(result)),
    )
    if report.error:
        print(report.error, file=sys.stderr)
    return EXIT_CODES[report.outcome]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Tell whether upstream files have been updated since the last time you checked."
        )
    )
    parser.add_argument(
        "-b",
        "--branch",
        default=None,
        help=(
            "Branch of the upstream repo to compare against. If not provided, all branches "
            "in 'checked_version_per_branch' are checked."
        ),
    )
    parser.add_argument(
        "-d",
        "--diff",
        action="store_true",
        help="Show changed lines instead of just a short summary.",
    )
    parser.add_argument(
        "-e",
        "--env-file",
        default=None,
        help="Path to a YAML file that defines the needed settings.",
    )
    parser.add_argument("--upstream-path", default=None, help="Local git working copy of the upstream")
    parser.add_argument("--upstream-url", default=None, help="URL to clone the upstream from")
    parser.add_argument(
        "--affected-file",
        action="append",
        default=None,
        help="Watched path relative to the upstream repository (repeatable)",
    )
    parser.add_argument(
        "--log-level",
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
        default=None,
        help="Override UPSTREAM_DRIFT_LOG_LEVEL",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        log_level = args.log_level or DriftSettings().log_level
    except ValidationError as exc:
        parser.error(str(exc))
    configure_logging(log_level)
    exit_code = detect(args)
    if exit_code:
        raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
