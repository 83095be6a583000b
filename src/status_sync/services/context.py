"""Per-merge state shared by the reconcilers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from status_sync.models import Account, Status
from status_sync.schemas.document import RemoteDocument


@dataclass
class MergeContext:
    """State of one update being merged into a status.

    Built by the update processor once the lock is held and discarded after
    the post-commit side effects ran.
    """

    status: Status
    document: RemoteDocument
    now: datetime
    media_rejected: bool = False
    # Set when media or poll composition changed; recorded on the edit.
    media_attachments_changed: bool = False
    previous_text: str = ""
    # Downloads are only queued once the merge is committed.
    pending_media_downloads: list[int] = field(default_factory=list)
    pending_emoji_downloads: list[int] = field(default_factory=list)

    @property
    def account(self) -> Account:
        return self.status.account
