"""Pydantic schema for remote actor documents."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

ACTOR_TYPES = frozenset({"Person", "Service", "Group", "Organization", "Application"})


class ActorDocument(BaseModel):
    """The subset of an ActivityPub actor needed to create an account."""

    id: str
    type: str
    preferred_username: str = Field(alias="preferredUsername", min_length=1)
    url: str | None = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("type")
    @classmethod
    def _check_type(cls, value: str) -> str:
        if value not in ACTOR_TYPES:
            raise ValueError(f"unsupported actor type {value!r}")
        return value

    @field_validator("url", mode="before")
    @classmethod
    def _coerce_url(cls, value: Any) -> str | None:
        if isinstance(value, dict):
            value = value.get("href")
        return value if isinstance(value, str) else None
