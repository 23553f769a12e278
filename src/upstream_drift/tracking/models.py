"""Models for tracked branch entries."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TrackedEntry(BaseModel):
    """A branch paired with the upstream revision last checked for it."""

    model_config = ConfigDict(frozen=True)

    branch: str = Field(..., description="Upstream branch (or any revision) to compare against.")
    last_checked_revision: str = Field(
        ..., description="Revision the vendored files were last synchronized with."
    )

    @field_validator("branch", "last_checked_revision")
    @classmethod
    def _normalize_token(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Tracked entry tokens must not be empty")
        if normalized.startswith("-"):
            raise ValueError(f"'{normalized}' is not a valid revision name")
        if any(char.isspace() for char in normalized):
            raise ValueError(f"'{normalized}' must not contain blank space")
        return normalized


__all__ = ["TrackedEntry"]
