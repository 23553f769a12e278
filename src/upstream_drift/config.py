"""Configuration management for upstream drift detection."""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_UPSTREAM_URL = "https://github.com/moodle/moodle.git"


class ConfigurationError(RuntimeError):
    """Raised when required configuration is missing or invalid."""


def _normalize_tracking_table(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        lines = []
        for branch, revision in value.items():
            if not isinstance(branch, str) or not isinstance(revision, str):
                raise ValueError(
                    f"checked_version_per_branch entry {branch!r}: {revision!r} must be text; "
                    "quote branch names and revisions"
                )
            lines.append(f"{branch} {revision}")
        return "\n".join(lines)
    if isinstance(value, (list, tuple)):
        if not all(isinstance(line, str) for line in value):
            raise ValueError("checked_version_per_branch lines must be text; quote them")
        return "\n".join(value)
    raise TypeError("checked_version_per_branch must be text, a mapping or a list of lines")


def _normalize_watched_paths(value: Any) -> tuple[str, ...]:
    if value is None or value == "":
        return ()
    if isinstance(value, str):
        items = value.split()
    elif isinstance(value, (list, tuple)):
        items = [str(item).strip() for item in value]
    else:
        raise TypeError("affected_files must be a list of paths or a space-separated string")

    paths: list[str] = []
    for item in items:
        if not item:
            continue
        path = PurePosixPath(item)
        if path.is_absolute() or ".." in path.parts:
            raise ValueError(f"affected file '{item}' must be relative to the upstream repository")
        if item not in paths:
            paths.append(item)
    return tuple(paths)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class DriftSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    checked_version_per_branch: str | None = Field(
        default=None, validation_alias="CHECKED_VERSION_PER_BRANCH"
    )
    upstream_path: Path | None = Field(default=None, validation_alias="UPSTREAM_PATH")
    upstream_git_url: str | None = Field(default=None, validation_alias="UPSTREAM_GIT_URL")
    affected_files: str | None = Field(default=None, validation_alias="AFFECTED_FILES")
    default_upstream_url: str = Field(
        default=DEFAULT_UPSTREAM_URL, validation_alias="UPSTREAM_DRIFT_DEFAULT_URL"
    )
    git_path: str | None = Field(default=None, validation_alias="UPSTREAM_DRIFT_GIT_PATH")
    log_level: str = Field(default="INFO", validation_alias="UPSTREAM_DRIFT_LOG_LEVEL")

    @field_validator("upstream_path", "upstream_git_url", "git_path", mode="before")
    @classmethod
    def _empty_is_unset(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "UPSTREAM_DRIFT_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized


class ConfigFile(BaseModel):
    """Schema of the YAML file passed with ``-e``."""

    model_config = ConfigDict(extra="forbid")

    checked_version_per_branch: str | None = None
    upstream_path: Path | None = None
    upstream_git_url: str | None = None
    affected_files: tuple[str, ...] | None = None

    @field_validator("checked_version_per_branch", mode="before")
    @classmethod
    def _parse_table(cls, value: Any) -> str | None:
        if value is None:
            return None
        return _normalize_tracking_table(value)

    @field_validator("affected_files", mode="before")
    @classmethod
    def _parse_affected_files(cls, value: Any) -> tuple[str, ...] | None:
        if value is None:
            return None
        return _normalize_watched_paths(value)

    @field_validator("upstream_path", "upstream_git_url", mode="before")
    @classmethod
    def _empty_is_unset(cls, value: Any) -> Any:
        return _blank_to_none(value)


class RunConfig(BaseModel):
    """Immutable configuration for a single detection run."""

    model_config = ConfigDict(frozen=True)

    tracking_table: str = Field(default="", description="Lines of '<branch> <revision>'.")
    upstream_path: Path | None = Field(
        default=None, description="Local working copy of the upstream repository."
    )
    upstream_git_url: str | None = Field(default=None, description="Remote to clone from.")
    default_upstream_url: str = Field(
        default=DEFAULT_UPSTREAM_URL,
        description="Clone source used when an explicit path is invalid and no URL is set.",
    )
    affected_files: tuple[str, ...] = Field(
        default=(),
        description="Watched paths relative to the repository; empty compares the whole tree.",
    )
    show_diff: bool = Field(default=False, description="Render full diffs instead of a summary.")
    branch: str | None = Field(default=None, description="Restrict the run to a single branch.")
    git_path: Path | None = Field(default=None, description="Explicit git executable.")

    @field_validator("tracking_table", mode="before")
    @classmethod
    def _parse_table(cls, value: Any) -> str:
        return _normalize_tracking_table(value)

    @field_validator("affected_files", mode="before")
    @classmethod
    def _parse_affected_files(cls, value: Any) -> tuple[str, ...]:
        return _normalize_watched_paths(value)

    @field_validator("upstream_path", "upstream_git_url", "branch", "git_path", mode="before")
    @classmethod
    def _empty_is_unset(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @property
    def upstream_description(self) -> str:
        """Describe which kind of upstream this run checks against."""

        if self.upstream_path is not None:
            if self.upstream_git_url is None:
                return "a local upstream working copy"
            return "a remote upstream that is also available locally"
        if self.upstream_git_url is not None:
            return "a remote upstream"
        return "an unspecified upstream"


def load_config_file(path: Path) -> dict[str, Any]:
    """Load and validate a YAML config file, returning only the keys it sets."""

    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"'{path}' is not a valid path.")

    try:
        # BaseLoader keeps every scalar a string, so hashes like 0123456 and tags
        # like 4.10 are not turned into numbers.
        document = yaml.load(path.read_text(encoding="utf-8"), Loader=yaml.BaseLoader)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Failed to parse YAML in {path}: {exc}") from exc

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ConfigurationError(f"{path} must contain a mapping of settings")

    normalized = {str(key).strip().lower(): value for key, value in document.items()}
    try:
        parsed = ConfigFile.model_validate(normalized)
    except ValidationError as exc:
        raise ConfigurationError(f"Config validation error in {path}: {exc}") from exc
    return parsed.model_dump(exclude_unset=True)


def build_run_config(
    settings: DriftSettings,
    file_values: Mapping[str, Any] | None = None,
    **overrides: Any,
) -> RunConfig:
    """Merge environment settings, file values and CLI overrides into a :class:`RunConfig`.

    Later sources win: overrides beat the file, which beats the environment.
    ``None`` overrides are ignored.
    """

    values: dict[str, Any] = {
        "tracking_table": settings.checked_version_per_branch,
        "upstream_path": settings.upstream_path,
        "upstream_git_url": settings.upstream_git_url,
        "affected_files": settings.affected_files,
        "default_upstream_url": settings.default_upstream_url,
        "git_path": settings.git_path,
    }

    for key, value in (file_values or {}).items():
        target = "tracking_table" if key == "checked_version_per_branch" else key
        values[target] = value

    for key, value in overrides.items():
        if value is not None:
            values[key] = value

    try:
        return RunConfig.model_validate(values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


__all__ = [
    "ConfigFile",
    "ConfigurationError",
    "DEFAULT_UPSTREAM_URL",
    "DriftSettings",
    "RunConfig",
    "build_run_config",
    "load_config_file",
]
