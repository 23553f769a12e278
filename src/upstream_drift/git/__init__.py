"""Git CLI orchestration utilities."""

from .runner import (
    FakeGitRunner,
    GitCommandError,
    GitExecutionResult,
    GitNotFoundError,
    GitRunner,
    GitRunnerError,
)

__all__ = [
    "FakeGitRunner",
    "GitCommandError",
    "GitExecutionResult",
    "GitNotFoundError",
    "GitRunner",
    "GitRunnerError",
]
