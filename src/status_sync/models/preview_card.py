# src/status_sync/models/preview_card.py
"""SQLAlchemy models for cached link previews."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, Column, ForeignKey, Table, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from status_sync.db.session import Base
from status_sync.db.types import BigIntegerPK

if TYPE_CHECKING:
    from status_sync.models.status import Status


preview_cards_statuses = Table(
    "preview_cards_statuses",
    Base.metadata,
    Column(
        "preview_card_id",
        BigInteger,
        ForeignKey("preview_cards.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("status_id", BigInteger, ForeignKey("statuses.id", ondelete="CASCADE"), primary_key=True),
)


class PreviewCard(Base):
    """Link preview generated by the link crawler and shared between statuses."""

    __tablename__ = "preview_cards"

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True)
    url: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    statuses: Mapped[list[Status]] = relationship(
        "Status",
        secondary=preview_cards_statuses,
        back_populates="preview_cards",
    )
