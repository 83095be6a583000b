"""Reconcile hashtags, mentions and custom emoji of a status."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from status_sync.core.errors import TRANSIENT_ERRORS
from status_sync.db.time import as_utc
from status_sync.models import Account, CustomEmoji, Mention, Status, Tag
from status_sync.schemas.document import TagEntry
from status_sync.services.collaborators import AccountFetcher, AccountResolver
from status_sync.services.context import MergeContext
from status_sync.services.extractors import (
    classify_tags,
    emoji_shortcode,
    normalize_hashtag,
    parse_timestamp,
)

logger = logging.getLogger(__name__)


def find_or_create_tags(session: Session, names: Iterable[str]) -> list[Tag]:
    """Return tags for ``names`` in first-seen order, creating missing ones.

    Names are normalized first; invalid names are skipped and duplicates
    collapse into a single tag.
    """
    normalized: list[str] = []
    for name in names:
        tag_name = normalize_hashtag(name)
        if tag_name is not None and tag_name not in normalized:
            normalized.append(tag_name)
    if not normalized:
        return []

    existing = {tag.name: tag for tag in session.scalars(select(Tag).where(Tag.name.in_(normalized)))}
    tags: list[Tag] = []
    for tag_name in normalized:
        tag = existing.get(tag_name)
        if tag is None:
            tag = Tag(name=tag_name)
            session.add(tag)
        tags.append(tag)
    session.flush()
    return tags


class MetadataReconciler:
    """Bring tags, mentions and emoji of a status in line with the document."""

    def __init__(
        self,
        *,
        account_resolver: AccountResolver,
        account_fetcher: AccountFetcher,
    ) -> None:
        self.account_resolver = account_resolver
        self.account_fetcher = account_fetcher

    def reconcile(self, session: Session, context: MergeContext) -> None:
        buckets = classify_tags(context.document)
        self.update_tags(session, context.status, buckets.hashtags)
        self.update_mentions(session, context.status, buckets.mentions)
        self.update_emojis(session, context, buckets.emojis)

    def update_tags(self, session: Session, status: Status, names: list[str]) -> None:
        """Replace the status's hashtags with the ones named in the document."""
        status.tags = find_or_create_tags(session, names)
        session.flush()

    def update_mentions(self, session: Session, status: Status, hrefs: list[str]) -> None:
        """Create mentions for newly referenced accounts and silence dropped ones.

        Mention rows are never deleted so existing notifications keep
        pointing at something.
        """
        previous = list(status.mentions)
        current: list[Mention] = []

        for href in hrefs:
            if not href.strip():
                continue
            account = self._resolve_account(session, href.strip())
            if account is None:
                continue

            mention = next(
                (item for item in (*previous, *current) if item.account_id == account.id),
                None,
            )
            if mention is None:
                mention = Mention(status_id=status.id, account_id=account.id, silent=False)
                session.add(mention)
                session.flush()
            if mention not in current:
                current.append(mention)

        dropped_ids = [mention.id for mention in status.active_mentions if mention not in current]
        if dropped_ids:
            session.execute(update(Mention).where(Mention.id.in_(dropped_ids)).values(silent=True))
            logger.debug("Silenced %d mentions of status %s", len(dropped_ids), status.id)
        session.expire(status, ["mentions"])

    def update_emojis(self, session: Session, context: MergeContext, entries: list[TagEntry]) -> None:
        """Create or refresh custom emoji defined by the status's origin domain.

        Emoji are skipped entirely when media from the origin is rejected.
        A failure storing one emoji only affects that emoji. Image downloads
        are left on the context for after the commit.
        """
        if context.media_rejected:
            return

        domain = context.account.domain
        for entry in entries:
            shortcode = emoji_shortcode(entry)
            image_url = entry.icon_url
            if shortcode is None or not image_url:
                continue

            updated = parse_timestamp(entry.updated)
            emoji = self._find_emoji(session, shortcode, domain)
            if emoji is not None and image_url == emoji.image_remote_url:
                if updated is None or updated < as_utc(emoji.updated_at):
                    continue

            try:
                with session.begin_nested():
                    if emoji is None:
                        emoji = CustomEmoji(shortcode=shortcode, domain=domain)
                        session.add(emoji)
                    emoji.uri = entry.id
                    emoji.image_remote_url = image_url
                    emoji.updated_at = context.now
                    session.flush()
            except IntegrityError as exc:
                logger.warning("Error storing emoji %s@%s: %s", shortcode, domain, exc.orig)
                continue
            context.pending_emoji_downloads.append(emoji.id)

    def _resolve_account(self, session: Session, href: str) -> Account | None:
        account = self.account_resolver.resolve(session, href)
        if account is not None:
            return account
        try:
            return self.account_fetcher.fetch(session, href)
        except TRANSIENT_ERRORS as exc:
            logger.warning("Could not fetch mentioned account %s: %s", href, exc)
            return None

    @staticmethod
    def _find_emoji(session: Session, shortcode: str, domain: str | None) -> CustomEmoji | None:
        stmt = select(CustomEmoji).where(CustomEmoji.shortcode == shortcode)
        if domain is None:
            stmt = stmt.where(CustomEmoji.domain.is_(None))
        else:
            stmt = stmt.where(CustomEmoji.domain == domain)
        return session.scalars(stmt.limit(1)).first()
