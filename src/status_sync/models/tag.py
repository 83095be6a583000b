# src/status_sync/models/tag.py
"""SQLAlchemy model for hashtags."""

from sqlalchemy import Text
from sqlalchemy.orm import Mapped, mapped_column

from status_sync.db.session import Base
from status_sync.db.types import BigIntegerPK


class Tag(Base):
    """Hashtag shared by any number of statuses."""

    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True)
    # Stored normalized (NFKC, lower-case, without the leading '#').
    name: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
