"""Pydantic schemas for federation payloads."""

from .actor import ActorDocument
from .document import (
    AttachmentDescriptor,
    DocumentKind,
    PollOption,
    RemoteDocument,
    TagEntry,
    TagKind,
    parse_document,
)

__all__ = [
    "ActorDocument",
    "AttachmentDescriptor",
    "DocumentKind",
    "PollOption",
    "RemoteDocument",
    "TagEntry",
    "TagKind",
    "parse_document",
]
