# src/status_sync/models/status_edit.py
"""SQLAlchemy model for the append-only status edit history."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from status_sync.db.session import Base
from status_sync.db.types import BigIntegerPK

if TYPE_CHECKING:
    from status_sync.models.status import Status


class StatusEdit(Base):
    """Immutable snapshot of a status at one point in its history.

    Rows are only ever inserted; the first row of a status describes its
    original, pre-edit content.
    """

    __tablename__ = "status_edits"

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True)
    status_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("statuses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    account_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )
    text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    spoiler_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    media_attachments_changed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    status: Mapped[Status] = relationship("Status", back_populates="edits")
