from __future__ import annotations

import textwrap
from pathlib import Path

import pytest
from pydantic import ValidationError

from upstream_drift.config import (
    DEFAULT_UPSTREAM_URL,
    ConfigurationError,
    DriftSettings,
    RunConfig,
    build_run_config,
    load_config_file,
)
from upstream_drift.tracking import TrackingTable


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> pytest.MonkeyPatch:
    monkeypatch.chdir(tmp_path)
    for name in (
        "CHECKED_VERSION_PER_BRANCH",
        "UPSTREAM_PATH",
        "UPSTREAM_GIT_URL",
        "AFFECTED_FILES",
        "UPSTREAM_DRIFT_DEFAULT_URL",
        "UPSTREAM_DRIFT_GIT_PATH",
        "UPSTREAM_DRIFT_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_settings_read_environment(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("CHECKED_VERSION_PER_BRANCH", "main v1.0")
    clean_env.setenv("UPSTREAM_PATH", "")
    clean_env.setenv("UPSTREAM_DRIFT_LOG_LEVEL", "debug")

    settings = DriftSettings()

    assert settings.checked_version_per_branch == "main v1.0"
    assert settings.upstream_path is None
    assert settings.log_level == "DEBUG"
    assert settings.default_upstream_url == DEFAULT_UPSTREAM_URL


def test_settings_reject_unknown_log_level(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("UPSTREAM_DRIFT_LOG_LEVEL", "chatty")

    with pytest.raises(ValidationError):
        DriftSettings()


def test_watched_paths_are_ordered_and_deduplicated() -> None:
    config = RunConfig(affected_files="lib/foo.php  lib/bar.php lib/foo.php")

    assert config.affected_files == ("lib/foo.php", "lib/bar.php")


@pytest.mark.parametrize("path", ["/etc/passwd", "../outside.php", "lib/../../x"])
def test_watched_paths_must_stay_inside_repository(path: str) -> None:
    with pytest.raises(ValidationError):
        RunConfig(affected_files=[path])


def test_tracking_table_accepts_mapping() -> None:
    config = RunConfig(tracking_table={"main": "v1.0", "stable": "v0.9"})

    assert config.tracking_table == "main v1.0\nstable v0.9"


def test_load_config_file(tmp_path: Path) -> None:
    path = tmp_path / "drift.yaml"
    path.write_text(
        textwrap.dedent(
            """
            CHECKED_VERSION_PER_BRANCH:
              - main v1.0
              - stable v0.9
            upstream_git_url: https://example.com/upstream.git
            affected_files: lib/foo.php lib/bar.php
            """
        ),
        encoding="utf-8",
    )

    values = load_config_file(path)

    assert values == {
        "checked_version_per_branch": "main v1.0\nstable v0.9",
        "upstream_git_url": "https://example.com/upstream.git",
        "affected_files": ("lib/foo.php", "lib/bar.php"),
    }


def test_load_config_file_missing(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="not a valid path"):
        load_config_file(tmp_path / "missing.yaml")


def test_load_config_file_rejects_unknown_keys(tmp_path: Path) -> None:
    path = tmp_path / "drift.yaml"
    path.write_text("upstream_branch: main\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_config_file(path)


def test_load_config_file_rejects_invalid_yaml(tmp_path: Path) -> None:
    path = tmp_path / "drift.yaml"
    path.write_text("affected_files: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="Failed to parse YAML"):
        load_config_file(path)


def test_build_run_config_precedence(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("CHECKED_VERSION_PER_BRANCH", "main env")
    clean_env.setenv("UPSTREAM_GIT_URL", "https://env.example/upstream.git")
    clean_env.setenv("AFFECTED_FILES", "lib/env.php")

    config = build_run_config(
        DriftSettings(),
        {"checked_version_per_branch": "main file", "affected_files": ("lib/file.php",)},
        affected_files=["lib/cli.php"],
        branch=None,
        show_diff=True,
    )

    assert config.tracking_table == "main file"
    assert config.upstream_git_url == "https://env.example/upstream.git"
    assert config.affected_files == ("lib/cli.php",)
    assert config.show_diff is True
    assert config.branch is None


def test_build_run_config_wraps_validation_errors(clean_env: pytest.MonkeyPatch) -> None:
    with pytest.raises(ConfigurationError):
        build_run_config(DriftSettings(), affected_files=["/absolute.php"])


def test_run_config_is_immutable() -> None:
    config = RunConfig(tracking_table="main v1.0")

    with pytest.raises(ValidationError):
        config.branch = "stable"  # type: ignore[misc]


def test_upstream_description() -> None:
    assert RunConfig(upstream_path=Path("/srv/moodle")).upstream_description == "a local upstream working copy"
    assert RunConfig(upstream_git_url="https://x").upstream_description == "a remote upstream"


def test_load_config_file_keeps_numeric_looking_revisions(tmp_path: Path) -> None:
    path = tmp_path / "drift.yaml"
    path.write_text(
        textwrap.dedent(
            """
            checked_version_per_branch:
              main: 0123456
              stable: 4.10
            """
        ),
        encoding="utf-8",
    )

    values = load_config_file(path)
    table = TrackingTable.parse(values["checked_version_per_branch"])

    assert table.lookup("main") == "0123456"
    assert table.lookup("stable") == "4.10"


def test_tracking_table_rejects_non_text_revisions() -> None:
    with pytest.raises(ValidationError, match="quote"):
        RunConfig(tracking_table={"main": 42798})
