# src/status_sync/models/poll.py
"""SQLAlchemy model for polls attached to statuses."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from status_sync.db.session import Base
from status_sync.db.types import BigIntegerPK

if TYPE_CHECKING:
    from status_sync.models.account import Account
    from status_sync.models.status import Status


class Poll(Base):
    """Single or multiple choice poll owned by an account.

    The option list is fixed at creation; votes and cached tallies reference
    options by position, so a different option list means a different poll.
    """

    __tablename__ = "polls"

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True)
    account_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )
    status_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("statuses.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    options: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    multiple: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    voters_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # One vote total per option, in option order.
    cached_tallies: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)

    account: Mapped[Account] = relationship("Account")
    status: Mapped[Status | None] = relationship("Status", back_populates="poll")
