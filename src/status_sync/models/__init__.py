"""SQLAlchemy models for the status sync worker."""

from .account import Account
from .custom_emoji import CustomEmoji
from .domain_block import DomainBlock
from .media_attachment import MediaAttachment
from .mention import Mention
from .poll import Poll
from .preview_card import PreviewCard
from .status import Status
from .status_edit import StatusEdit
from .tag import Tag

__all__ = [
    "Account",
    "CustomEmoji",
    "DomainBlock",
    "MediaAttachment",
    "Mention",
    "Poll",
    "PreviewCard",
    "Status",
    "StatusEdit",
    "Tag",
]
