# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import UTC, datetime
from itertools import count
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")

from status_sync.db.session import Base
from status_sync.models import Account, Status
from status_sync.services.collaborators import LocalAccountResolver
from status_sync.services.locking import InMemoryLocker
from status_sync.services.process_status import ProcessStatusService

TEST_DB_URL = "sqlite://"
REMOTE_DOMAIN = "remote.example"
NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
CREATED_AT = datetime(2024, 4, 30, 8, 0, tzinfo=UTC)

_ACCOUNT_COUNTER = count(1)
_STATUS_COUNTER = count(1)


class RecordingScheduler:
    """Job scheduler that records every side effect instead of queueing it."""

    def __init__(self) -> None:
        self.media_downloads: list[int] = []
        self.emoji_downloads: list[int] = []
        self.link_preview_refreshes: list[tuple[int, int]] = []
        self.broadcasts: list[int] = []

    def schedule_media_download(self, attachment_id: int) -> None:
        self.media_downloads.append(attachment_id)

    def schedule_emoji_download(self, emoji_id: int) -> None:
        self.emoji_downloads.append(emoji_id)

    def schedule_link_preview_refresh(self, status_id: int, delay_seconds: int) -> None:
        self.link_preview_refreshes.append((status_id, delay_seconds))

    def broadcast_update(self, status_id: int) -> None:
        self.broadcasts.append(status_id)


class StaticMediaPolicy:
    def __init__(self, rejected: bool = False) -> None:
        self.rejected = rejected

    def reject_media(self, session: Session, domain: str | None) -> bool:
        return self.rejected


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    # The update processor commits and rolls back on its own, so the session
    # is bound to the engine directly and tables are emptied afterwards.
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def make_account(db_session: Session) -> Callable[..., Account]:
    """Return a factory persisting accounts."""

    def _make_account(
        username: str | None = None,
        domain: str | None = REMOTE_DOMAIN,
        **overrides: Any,
    ) -> Account:
        username = username or f"user{next(_ACCOUNT_COUNTER)}"
        host = domain or "local.example"
        account = Account(
            uri=overrides.pop("uri", f"https://{host}/users/{username}"),
            url=overrides.pop("url", f"https://{host}/@{username}"),
            username=username,
            domain=domain,
            **overrides,
        )
        db_session.add(account)
        db_session.flush()
        return account

    return _make_account


@pytest.fixture()
def remote_account(make_account: Callable[..., Account]) -> Account:
    """Create the author of the remote status."""
    return make_account("alice")


@pytest.fixture()
def make_status(db_session: Session, remote_account: Account) -> Callable[..., Status]:
    """Return a factory persisting statuses authored by ``remote_account``."""

    def _make_status(**overrides: Any) -> Status:
        number = next(_STATUS_COUNTER)
        status = Status(
            uri=overrides.pop("uri", f"https://{REMOTE_DOMAIN}/notes/{number}"),
            account_id=overrides.pop("account_id", remote_account.id),
            text=overrides.pop("text", "Original text"),
            spoiler_text=overrides.pop("spoiler_text", ""),
            created_at=overrides.pop("created_at", CREATED_AT),
            **overrides,
        )
        db_session.add(status)
        db_session.commit()
        return status

    return _make_status


@pytest.fixture()
def status(make_status: Callable[..., Status]) -> Status:
    """Create a baseline remote status."""
    return make_status()


@pytest.fixture()
def note_payload(status: Status) -> Callable[..., dict[str, Any]]:
    """Return a builder for update payloads describing ``status``."""

    def _note_payload(**fields: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": status.uri,
            "type": "Note",
            "content": "<p>Edited text</p>",
            "updated": "2024-05-01T10:00:00Z",
        }
        payload.update(fields)
        return payload

    return _note_payload


@pytest.fixture()
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture()
def locker() -> InMemoryLocker:
    return InMemoryLocker()


@pytest.fixture()
def account_fetcher(mocker) -> Any:
    fetcher = mocker.MagicMock()
    fetcher.fetch.return_value = None
    return fetcher


@pytest.fixture()
def media_policy() -> StaticMediaPolicy:
    return StaticMediaPolicy()


@pytest.fixture()
def service(
    locker: InMemoryLocker,
    scheduler: RecordingScheduler,
    account_fetcher: Any,
    media_policy: StaticMediaPolicy,
) -> ProcessStatusService:
    """Build the update processor around recording collaborators."""
    return ProcessStatusService(
        locker=locker,
        scheduler=scheduler,
        account_resolver=LocalAccountResolver(),
        account_fetcher=account_fetcher,
        media_policy=media_policy,
        clock=lambda: NOW,
    )
