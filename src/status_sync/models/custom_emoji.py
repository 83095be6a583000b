# src/status_sync/models/custom_emoji.py
"""SQLAlchemy model for custom emoji definitions."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from status_sync.db.session import Base
from status_sync.db.time import utcnow
from status_sync.db.types import BigIntegerPK


class CustomEmoji(Base):
    """Custom emoji keyed by shortcode and the domain that defines it."""

    __tablename__ = "custom_emojis"
    __table_args__ = (
        UniqueConstraint("shortcode", "domain", name="uq_custom_emojis_shortcode_domain"),
    )

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True)
    shortcode: Mapped[str] = mapped_column(Text, nullable=False)
    domain: Mapped[str | None] = mapped_column(Text, nullable=True)
    uri: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_remote_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
