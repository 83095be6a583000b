# src/status_sync/models/domain_block.py
"""SQLAlchemy model for per-domain moderation policies."""

from sqlalchemy import Boolean, Text
from sqlalchemy.orm import Mapped, mapped_column

from status_sync.db.session import Base
from status_sync.db.types import BigIntegerPK


class DomainBlock(Base):
    """Moderation policy applied to everything federated from a domain."""

    __tablename__ = "domain_blocks"

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True)
    domain: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    # Media and custom emoji from the domain are neither downloaded nor stored.
    reject_media: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
