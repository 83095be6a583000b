# src/status_sync/models/media_attachment.py
"""SQLAlchemy model for media attached to statuses."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from status_sync.db.session import Base
from status_sync.db.types import BigIntegerPK

if TYPE_CHECKING:
    from status_sync.models.account import Account
    from status_sync.models.status import Status

FILE_STATE_PENDING = "pending"
FILE_STATE_DOWNLOADED = "downloaded"


class MediaAttachment(Base):
    """Media object owned by an account and optionally linked to a status.

    Attachments dropped from a status are unlinked rather than deleted since
    the account still owns them.
    """

    __tablename__ = "media_attachments"

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True)
    account_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("statuses.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    remote_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    thumbnail_remote_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Focal point stored as "x,y" with both coordinates in [-1.0, 1.0].
    focus: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_state: Mapped[str] = mapped_column(Text, nullable=False, default=FILE_STATE_PENDING)

    account: Mapped[Account] = relationship("Account")
    status: Mapped[Status | None] = relationship("Status", back_populates="media_attachments")
