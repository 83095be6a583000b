"""Pure helpers pulling typed values out of a parsed remote document.

These functions apply the protocol's fallback rules (language maps,
``anyOf``/``oneOf`` poll shapes, closed vs. end time) and never touch the
database.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime
from urllib.parse import quote, urlsplit, urlunsplit

from status_sync.db.time import as_utc
from status_sync.schemas.document import (
    DocumentKind,
    PollOption,
    RemoteDocument,
    TagEntry,
    TagKind,
)

logger = logging.getLogger(__name__)

UNDETERMINED_LANGUAGE = "und"

_DEFAULT_PORTS = {"http": 80, "https": 443}
_HASHTAG_RE = re.compile(r"^\w*[^\W\d_]\w*$")


class InvalidURLError(ValueError):
    """Raised when a URL cannot be normalized."""


@dataclass(frozen=True)
class PollShape:
    """Poll options and settings declared by a ``Question`` document."""

    options: list[str]
    multiple: bool
    tallies: list[int]
    closed: str | bool | None
    end_time: str | None
    voters_count: int | None


@dataclass
class TagBuckets:
    """Document tags split by kind."""

    hashtags: list[str] = field(default_factory=list)
    mentions: list[str] = field(default_factory=list)
    emojis: list[TagEntry] = field(default_factory=list)


def expected_type(document: RemoteDocument) -> bool:
    """Return True if updates of this document kind apply to statuses."""
    return document.kind in (DocumentKind.NOTE, DocumentKind.QUESTION)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp into an aware UTC datetime.

    Returns ``None`` for missing or unparsable values.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        logger.debug("Unparsable timestamp: %r", value)
        return None
    return as_utc(parsed)


def normalize_url(url: str) -> str:
    """Return a normalized form of ``url`` suitable for equality comparisons.

    Lower-cases scheme and host, converts the host to IDNA, drops default
    ports and empty fragments, and percent-encodes unsafe characters.

    Raises:
        InvalidURLError: If ``url`` is not an absolute http(s)-style URL.
    """
    candidate = url.strip()
    try:
        parts = urlsplit(candidate)
        port = parts.port
    except ValueError as exc:
        raise InvalidURLError(f"Invalid URL {url!r}: {exc}") from exc

    if not parts.scheme or not parts.hostname:
        raise InvalidURLError(f"Invalid URL {url!r}: missing scheme or host")
    if any(char.isspace() for char in candidate):
        raise InvalidURLError(f"Invalid URL {url!r}: contains whitespace")

    scheme = parts.scheme.lower()
    try:
        host = parts.hostname.encode("idna").decode("ascii").lower()
    except UnicodeError as exc:
        raise InvalidURLError(f"Invalid URL {url!r}: bad host") from exc

    netloc = host
    if parts.username:
        userinfo = quote(parts.username, safe="%!$&'()*+,;=")
        if parts.password:
            userinfo += ":" + quote(parts.password, safe="%!$&'()*+,;=")
        netloc = f"{userinfo}@{netloc}"
    if port is not None and _DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{netloc}:{port}"

    path = quote(parts.path, safe="%/:@!$&'()*+,;=-._~") or "/"
    query = quote(parts.query, safe="%/:@!$&'()*+,;=?-._~")
    fragment = quote(parts.fragment, safe="%/:@!$&'()*+,;=?-._~")
    return urlunsplit((scheme, netloc, path, query, fragment))


def text_from_content(document: RemoteDocument) -> str | None:
    """Return the status text, falling back to the first language-map entry."""
    if document.content:
        return document.content
    if document.content_map:
        return next(iter(document.content_map.values()))
    return None


def text_from_summary(document: RemoteDocument) -> str | None:
    """Return the spoiler text, falling back to the first language-map entry."""
    if document.summary:
        return document.summary
    if document.summary_map:
        return next(iter(document.summary_map.values()))
    return None


def language_from_content(document: RemoteDocument) -> str:
    """Return the language tag from the content or summary map, or ``und``."""
    if document.content_map:
        return next(iter(document.content_map))
    if document.summary_map:
        return next(iter(document.summary_map))
    return UNDETERMINED_LANGUAGE


def icon_url_from_attachment(url: str | None) -> str | None:
    """Return the normalized thumbnail URL, or ``None`` if absent or malformed."""
    if not url or not url.strip():
        return None
    try:
        return normalize_url(url)
    except InvalidURLError:
        return None


def focus_from_attachment(focal_point: list[float] | None) -> str | None:
    """Return the focal point serialized as ``"x,y"``."""
    if focal_point is None:
        return None
    x, y = (max(-1.0, min(1.0, value)) for value in focal_point)
    return f"{x:.2f},{y:.2f}"


def poll_shape_from(document: RemoteDocument) -> PollShape | None:
    """Return the poll declared by a ``Question``, or ``None`` if it has none.

    ``anyOf`` takes precedence over ``oneOf`` and marks the poll as multiple
    choice. Options without a label are dropped.
    """
    if document.kind is not DocumentKind.QUESTION:
        return None

    items: list[PollOption]
    if document.any_of is not None:
        items, multiple = document.any_of, True
    elif document.one_of is not None:
        items, multiple = document.one_of, False
    else:
        return None

    labelled = [item for item in items if item.label is not None]
    return PollShape(
        options=[item.label for item in labelled if item.label is not None],
        multiple=multiple,
        tallies=[item.votes_count for item in labelled],
        closed=document.closed,
        end_time=document.end_time,
        voters_count=document.voters_count,
    )


def poll_expiry(shape: PollShape, now: datetime) -> datetime | None:
    """Return when the poll closes.

    An explicit ``closed`` timestamp wins; a truthy ``closed`` flag means the
    poll closed now; otherwise the declared ``endTime`` is used.
    """
    if isinstance(shape.closed, str):
        closed_at = parse_timestamp(shape.closed)
        if closed_at is not None:
            return closed_at
        logger.debug("Ignoring unparsable poll closed timestamp %r", shape.closed)
    elif shape.closed:
        return now
    return parse_timestamp(shape.end_time)


def normalize_hashtag(name: str | None) -> str | None:
    """Return the normalized hashtag name, or ``None`` if it is not a valid tag."""
    if not name:
        return None
    normalized = unicodedata.normalize("NFKC", name.strip().lstrip("#")).lower()
    if not _HASHTAG_RE.match(normalized):
        return None
    return normalized


def classify_tags(document: RemoteDocument) -> TagBuckets:
    """Split the document's tag list into hashtags, mention hrefs and emoji."""
    buckets = TagBuckets()
    for tag in document.tag:
        kind = tag.kind
        if kind is TagKind.HASHTAG:
            if tag.name:
                buckets.hashtags.append(tag.name)
        elif kind is TagKind.MENTION:
            if tag.href:
                buckets.mentions.append(tag.href)
        elif kind is TagKind.EMOJI:
            buckets.emojis.append(tag)
    return buckets


def emoji_shortcode(tag: TagEntry) -> str | None:
    """Return the emoji shortcode without surrounding colons."""
    if not tag.name:
        return None
    shortcode = tag.name.strip().strip(":")
    return shortcode or None
