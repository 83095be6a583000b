# src/status_sync/models/status.py
"""SQLAlchemy models for statuses and their tag links."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Table, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from status_sync.db.session import Base
from status_sync.db.time import utcnow
from status_sync.db.types import BigIntegerPK

if TYPE_CHECKING:
    from status_sync.models.account import Account
    from status_sync.models.media_attachment import MediaAttachment
    from status_sync.models.mention import Mention
    from status_sync.models.poll import Poll
    from status_sync.models.preview_card import PreviewCard
    from status_sync.models.status_edit import StatusEdit
    from status_sync.models.tag import Tag


statuses_tags = Table(
    "statuses_tags",
    Base.metadata,
    Column("status_id", BigInteger, ForeignKey("statuses.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", BigInteger, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Status(Base):
    """A post authored by an account, possibly federated from another server.

    Statuses are only ever mutated by the update processor while it holds the
    lock for the status URI.
    """

    __tablename__ = "statuses"

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True)
    # Resource identifier of the remote object this status mirrors.
    uri: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    account_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    spoiler_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    sensitive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    language: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    # Never moves backwards; stale deliveries are rejected against it.
    edited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    account: Mapped[Account] = relationship("Account")
    tags: Mapped[list[Tag]] = relationship("Tag", secondary=statuses_tags, order_by="Tag.id")
    media_attachments: Mapped[list[MediaAttachment]] = relationship(
        "MediaAttachment",
        back_populates="status",
        order_by="MediaAttachment.id",
    )
    poll: Mapped[Poll | None] = relationship("Poll", back_populates="status", uselist=False)
    mentions: Mapped[list[Mention]] = relationship(
        "Mention",
        back_populates="status",
        order_by="Mention.id",
    )
    edits: Mapped[list[StatusEdit]] = relationship(
        "StatusEdit",
        back_populates="status",
        order_by="StatusEdit.id",
    )
    preview_cards: Mapped[list[PreviewCard]] = relationship(
        "PreviewCard",
        secondary="preview_cards_statuses",
        back_populates="statuses",
    )

    @property
    def active_mentions(self) -> list[Mention]:
        """Return the mentions that still notify their target."""
        return [mention for mention in self.mentions if not mention.silent]
