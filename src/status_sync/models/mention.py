# src/status_sync/models/mention.py
"""SQLAlchemy model linking statuses to the accounts they mention."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from status_sync.db.session import Base
from status_sync.db.types import BigIntegerPK

if TYPE_CHECKING:
    from status_sync.models.account import Account
    from status_sync.models.status import Status


class Mention(Base):
    """An account referenced by a status.

    Mentions are never removed once created; a mention that disappears from
    the status text is made silent so it stops producing notifications.
    """

    __tablename__ = "mentions"
    __table_args__ = (
        UniqueConstraint("status_id", "account_id", name="uq_mentions_status_account"),
    )

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True)
    status_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("statuses.id", ondelete="CASCADE"),
        nullable=False,
    )
    account_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    silent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    status: Mapped[Status] = relationship("Status", back_populates="mentions")
    account: Mapped[Account] = relationship("Account")
