# src/status_sync/models/account.py
"""SQLAlchemy models for local and federated accounts."""

from __future__ import annotations

from sqlalchemy import Boolean, Text
from sqlalchemy.orm import Mapped, mapped_column

from status_sync.db.session import Base
from status_sync.db.types import BigIntegerPK


class Account(Base):
    """An account that authors statuses or is mentioned by them.

    Remote accounts carry the domain they federate from; local accounts have
    no domain.
    """

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True)
    # Canonical ActivityPub actor identifier.
    uri: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    # Human-facing profile URL; mentions sometimes reference this instead of the uri.
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    username: Mapped[str] = mapped_column(Text, nullable=False)
    domain: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    # Moderators can force every status of an account to be marked sensitive.
    sensitized: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    @property
    def local(self) -> bool:
        """Return True if the account belongs to this instance."""
        return self.domain is None

    @property
    def acct(self) -> str:
        """Return the ``user@domain`` handle, or the bare username for local accounts."""
        if self.local:
            return self.username
        return f"{self.username}@{self.domain}"
