"""Reconcile a status's media attachments with the remote attachment list."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from status_sync.core.settings import settings
from status_sync.models import MediaAttachment
from status_sync.services.context import MergeContext
from status_sync.services.extractors import (
    InvalidURLError,
    focus_from_attachment,
    icon_url_from_attachment,
    normalize_url,
)

logger = logging.getLogger(__name__)


def _find_by_url(attachments: Iterable[MediaAttachment], href: str) -> MediaAttachment | None:
    return next((attachment for attachment in attachments if attachment.remote_url == href), None)


class MediaReconciler:
    """Match remote attachment descriptors to stored attachments.

    Attachments dropped by the remote side are unlinked from the status but
    kept, since they still belong to the account.
    """

    def __init__(
        self,
        *,
        max_attachments: int | None = None,
        supported_media_types: Iterable[str] | None = None,
    ) -> None:
        self.max_attachments = (
            settings.max_media_attachments if max_attachments is None else max_attachments
        )
        self.supported_media_types = frozenset(
            settings.supported_media_types if supported_media_types is None else supported_media_types
        )

    def reconcile(self, session: Session, context: MergeContext) -> bool:
        """Apply the document's attachments to the status.

        Returns:
            True if the set of attachments linked to the status changed.
        """
        status = context.status
        previous = list(status.media_attachments)
        previous_ids = {attachment.id for attachment in previous}
        collected: list[MediaAttachment] = []

        for descriptor in context.document.attachment:
            if len(collected) >= self.max_attachments:
                break
            if not descriptor.url or not descriptor.url.strip():
                continue

            try:
                href = normalize_url(descriptor.url)
            except InvalidURLError as exc:
                logger.debug("Invalid URL in attachment: %s", exc)
                continue

            attachment = _find_by_url(previous, href) or _find_by_url(collected, href)
            if attachment is not None and attachment in collected:
                continue

            created = attachment is None
            if attachment is None:
                attachment = MediaAttachment(account_id=status.account_id, remote_url=href)
                session.add(attachment)
            previous_thumbnail = attachment.thumbnail_remote_url

            attachment.description = descriptor.description
            attachment.focus = focus_from_attachment(descriptor.focal_point)
            attachment.thumbnail_remote_url = icon_url_from_attachment(descriptor.icon_url)
            session.flush()
            collected.append(attachment)

            if self.unsupported_media_type(descriptor.media_type) or context.media_rejected:
                continue
            if created or previous_thumbnail != attachment.thumbnail_remote_url:
                context.pending_media_downloads.append(attachment.id)

        collected_ids = [attachment.id for attachment in collected]
        removed_ids = [attachment.id for attachment in previous if attachment.id not in collected_ids]

        if removed_ids:
            session.execute(
                update(MediaAttachment)
                .where(MediaAttachment.id.in_(removed_ids))
                .values(status_id=None)
            )
        if collected_ids:
            session.execute(
                update(MediaAttachment)
                .where(MediaAttachment.id.in_(collected_ids))
                .values(status_id=status.id)
            )
        session.expire(status, ["media_attachments"])

        current_ids = set(
            session.scalars(select(MediaAttachment.id).where(MediaAttachment.status_id == status.id))
        )
        changed = current_ids != previous_ids
        if changed:
            logger.debug(
                "Media of status %s changed: %d unlinked, %d linked",
                status.id,
                len(previous_ids - current_ids),
                len(current_ids - previous_ids),
            )
        return changed

    def unsupported_media_type(self, media_type: str | None) -> bool:
        """Return True if a declared media type is one we never download."""
        return bool(media_type) and media_type not in self.supported_media_types
