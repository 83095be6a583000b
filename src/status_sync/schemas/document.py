"""Pydantic schemas for parsed federation documents.

The delivery layer hands over an already-parsed JSON-LD object (envelope and
signature handling happen upstream). These models give it a typed shape while
staying lenient: fields that do not fit are dropped to ``None`` instead of
rejecting the whole document, so one malformed sub-field only affects the item
it belongs to.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DocumentKind(str, Enum):
    """Object types whose updates are applied to statuses."""

    NOTE = "Note"
    QUESTION = "Question"


class TagKind(str, Enum):
    """Kinds of entries found in a document's ``tag`` list."""

    HASHTAG = "Hashtag"
    MENTION = "Mention"
    EMOJI = "Emoji"


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _string_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _declared_types(value: str | list[str] | None) -> list[str]:
    return [item for item in _as_list(value) if isinstance(item, str)]


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LinkObject(_Document):
    """Minimal ``Image``/``Link`` object, as used for icons."""

    type: str | None = None
    url: str | None = None

    @field_validator("url", mode="before")
    @classmethod
    def _coerce_url(cls, value: Any) -> str | None:
        if isinstance(value, Mapping):
            value = value.get("href")
        return _string_or_none(value)


def _icon_url(icon: LinkObject | str | None) -> str | None:
    if isinstance(icon, LinkObject):
        return icon.url
    return icon


class AttachmentDescriptor(_Document):
    """A single entry of the document's ``attachment`` list."""

    type: str | list[str] | None = None
    url: str | None = None
    media_type: str | None = Field(default=None, alias="mediaType")
    name: str | None = None
    summary: str | None = None
    focal_point: list[float] | None = Field(default=None, alias="focalPoint")
    icon: LinkObject | str | None = None

    @field_validator("media_type", "name", "summary", mode="before")
    @classmethod
    def _coerce_strings(cls, value: Any) -> str | None:
        return _string_or_none(value)

    @field_validator("url", mode="before")
    @classmethod
    def _coerce_url(cls, value: Any) -> str | None:
        # Some servers send a Link object or a list of them instead of a bare URL.
        if isinstance(value, list):
            value = value[0] if value else None
        if isinstance(value, Mapping):
            value = value.get("href")
        return _string_or_none(value)

    @field_validator("focal_point", mode="before")
    @classmethod
    def _coerce_focal_point(cls, value: Any) -> list[float] | None:
        if not isinstance(value, list) or len(value) != 2:
            return None
        if not all(isinstance(item, int | float) and not isinstance(item, bool) for item in value):
            return None
        return [float(item) for item in value]

    @field_validator("icon", mode="before")
    @classmethod
    def _coerce_icon(cls, value: Any) -> Any:
        if isinstance(value, list):
            value = value[0] if value else None
        if isinstance(value, Mapping | str):
            return value
        return None

    @property
    def description(self) -> str | None:
        """Return the alt text, preferring ``summary`` over ``name``."""
        return self.summary or self.name or None

    @property
    def icon_url(self) -> str | None:
        """Return the raw thumbnail URL, if any."""
        return _icon_url(self.icon)


class RepliesCollection(_Document):
    """Collection summary carrying a poll option's vote total."""

    total_items: int | None = Field(default=None, alias="totalItems")

    @field_validator("total_items", mode="before")
    @classmethod
    def _coerce_total(cls, value: Any) -> int | None:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            return None
        return value


class PollOption(_Document):
    """One entry of a question's ``anyOf``/``oneOf`` list."""

    name: str | None = None
    content: str | None = None
    replies: RepliesCollection | None = None

    @field_validator("name", "content", mode="before")
    @classmethod
    def _coerce_strings(cls, value: Any) -> str | None:
        return _string_or_none(value)

    @field_validator("replies", mode="before")
    @classmethod
    def _coerce_replies(cls, value: Any) -> Any:
        return value if isinstance(value, Mapping) else None

    @property
    def label(self) -> str | None:
        """Return the option label, preferring ``name`` over ``content``."""
        return self.name or self.content

    @property
    def votes_count(self) -> int:
        """Return the option's vote total, defaulting to zero."""
        if self.replies is None or self.replies.total_items is None:
            return 0
        return self.replies.total_items


class TagEntry(_Document):
    """One entry of the document's ``tag`` list (hashtag, mention or emoji)."""

    type: str | list[str] | None = None
    id: str | None = None
    name: str | None = None
    href: str | None = None
    icon: LinkObject | str | None = None
    updated: str | None = None

    @field_validator("id", "name", "href", "updated", mode="before")
    @classmethod
    def _coerce_strings(cls, value: Any) -> str | None:
        return _string_or_none(value)

    @field_validator("icon", mode="before")
    @classmethod
    def _coerce_icon(cls, value: Any) -> Any:
        if isinstance(value, Mapping | str):
            return value
        return None

    @property
    def kind(self) -> TagKind | None:
        """Return the tag kind, or ``None`` for kinds this worker ignores."""
        declared = _declared_types(self.type)
        for kind in TagKind:
            if kind.value in declared:
                return kind
        return None

    @property
    def icon_url(self) -> str | None:
        """Return the emoji image URL, if any."""
        return _icon_url(self.icon)


class RemoteDocument(_Document):
    """Parsed ``Note`` or ``Question`` object describing a remote status."""

    id: str
    type: str | list[str] | None = None
    content: str | None = None
    content_map: dict[str, str] | None = Field(default=None, alias="contentMap")
    summary: str | None = None
    summary_map: dict[str, str] | None = Field(default=None, alias="summaryMap")
    sensitive: bool | None = None
    updated: str | None = None
    attachment: list[AttachmentDescriptor] = Field(default_factory=list)
    any_of: list[PollOption] | None = Field(default=None, alias="anyOf")
    one_of: list[PollOption] | None = Field(default=None, alias="oneOf")
    closed: str | bool | None = None
    end_time: str | None = Field(default=None, alias="endTime")
    voters_count: int | None = Field(default=None, alias="votersCount")
    tag: list[TagEntry] = Field(default_factory=list)

    @field_validator("content", "summary", "updated", "end_time", mode="before")
    @classmethod
    def _coerce_strings(cls, value: Any) -> str | None:
        return _string_or_none(value)

    @field_validator("content_map", "summary_map", mode="before")
    @classmethod
    def _coerce_language_map(cls, value: Any) -> dict[str, str] | None:
        if not isinstance(value, Mapping):
            return None
        return {
            key: text for key, text in value.items() if isinstance(key, str) and isinstance(text, str)
        }

    @field_validator("attachment", "tag", mode="before")
    @classmethod
    def _coerce_object_list(cls, value: Any) -> list[Any]:
        return [item for item in _as_list(value) if isinstance(item, Mapping)]

    @field_validator("any_of", "one_of", mode="before")
    @classmethod
    def _coerce_poll_options(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return None
        return [item for item in value if isinstance(item, Mapping)]

    @field_validator("sensitive", mode="before")
    @classmethod
    def _coerce_sensitive(cls, value: Any) -> bool | None:
        return value if isinstance(value, bool) else None

    @field_validator("closed", mode="before")
    @classmethod
    def _coerce_closed(cls, value: Any) -> str | bool | None:
        return value if isinstance(value, str | bool) else None

    @field_validator("voters_count", mode="before")
    @classmethod
    def _coerce_voters_count(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        return value

    @property
    def kind(self) -> DocumentKind | None:
        """Return the document kind, or ``None`` when updates do not apply to it."""
        declared = _declared_types(self.type)
        for kind in DocumentKind:
            if kind.value in declared:
                return kind
        return None


def parse_document(payload: Mapping[str, Any]) -> RemoteDocument:
    """Validate a parsed JSON-LD object into a :class:`RemoteDocument`.

    Raises:
        pydantic.ValidationError: If the object has no usable ``id``.
    """
    return RemoteDocument.model_validate(dict(payload))
