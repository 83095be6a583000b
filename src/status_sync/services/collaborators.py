"""Account lookup and media policy collaborators used during a merge.

Every implementation receives the caller's session so its reads and writes
take part in the merge transaction.
"""

from __future__ import annotations

import logging
from typing import Protocol
from urllib.parse import urlsplit

import httpx
from pydantic import ValidationError
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from status_sync.core.errors import AccountFetchError
from status_sync.core.settings import settings
from status_sync.models import Account, DomainBlock
from status_sync.schemas.actor import ActorDocument
from status_sync.services.extractors import InvalidURLError, normalize_url

logger = logging.getLogger(__name__)

FETCHABLE_SCHEMES = ("http", "https")

ACTIVITY_JSON_ACCEPT = (
    'application/activity+json, application/ld+json; profile="https://www.w3.org/ns/activitystreams"'
)


class AccountResolver(Protocol):
    """Looks up an already known account by reference URL."""

    def resolve(self, session: Session, reference: str) -> Account | None: ...


class AccountFetcher(Protocol):
    """Retrieves an unknown remote account by reference URL."""

    def fetch(self, session: Session, reference: str) -> Account | None: ...


class MediaPolicy(Protocol):
    """Decides whether media from an origin domain may be stored."""

    def reject_media(self, session: Session, domain: str | None) -> bool: ...


class LocalAccountResolver:
    """Resolve accounts stored locally by their ``uri`` or profile ``url``."""

    def resolve(self, session: Session, reference: str) -> Account | None:
        stmt = (
            select(Account)
            .where(or_(Account.uri == reference, Account.url == reference))
            .limit(1)
        )
        return session.scalars(stmt).first()


class RemoteAccountFetcher:
    """Fetch an actor document over HTTP and store it as an account.

    The request is bounded by ``REMOTE_FETCH_TIMEOUT_SECONDS`` because it runs
    while the status lock is held.
    """

    def __init__(self, client: httpx.Client | None = None) -> None:
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(settings.remote_fetch_timeout_seconds),
            follow_redirects=True,
            headers={"Accept": ACTIVITY_JSON_ACCEPT, "User-Agent": settings.user_agent},
        )

    def fetch(self, session: Session, reference: str) -> Account | None:
        """Return the account for ``reference``, creating it if needed.

        Raises:
            httpx.HTTPError: On network failures or error responses.
            AccountFetchError: If ``reference`` is not a fetchable URL or the
                response is not a usable actor document.
        """
        url = _fetchable_url(reference)
        try:
            response = self._client.get(url)
        except httpx.InvalidURL as exc:
            raise AccountFetchError(f"Cannot fetch {reference!r}: {exc}") from exc
        response.raise_for_status()

        try:
            actor = ActorDocument.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise AccountFetchError(f"Unusable actor document at {reference}: {exc}") from exc

        domain = urlsplit(_fetchable_url(actor.id)).hostname
        if not domain:
            raise AccountFetchError(f"Actor id {actor.id!r} has no host")

        account = session.scalars(select(Account).where(Account.uri == actor.id)).first()
        if account is None:
            account = Account(uri=actor.id, username=actor.preferred_username, domain=domain.lower())
            session.add(account)
        account.url = actor.url
        account.username = actor.preferred_username
        session.flush()
        logger.info("Fetched remote account %s", account.acct)
        return account

    def close(self) -> None:
        """Clean up underlying HTTP client resources."""
        self._client.close()


def _fetchable_url(reference: str) -> str:
    try:
        url = normalize_url(reference)
    except InvalidURLError as exc:
        raise AccountFetchError(str(exc)) from exc
    if urlsplit(url).scheme not in FETCHABLE_SCHEMES:
        raise AccountFetchError(f"Cannot fetch {reference!r}: unsupported scheme")
    return url


class DomainBlockPolicy:
    """Reject media from domains (or parent domains) with a ``reject_media`` block."""

    def reject_media(self, session: Session, domain: str | None) -> bool:
        if not domain:
            return False

        labels = domain.lower().rstrip(".").split(".")
        candidates = [".".join(labels[index:]) for index in range(len(labels) - 1)] or [domain]
        stmt = select(DomainBlock.id).where(
            DomainBlock.domain.in_(candidates),
            DomainBlock.reject_media.is_(True),
        )
        return session.scalars(stmt.limit(1)).first() is not None
