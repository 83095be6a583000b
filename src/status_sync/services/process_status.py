"""Apply remote updates to stored statuses.

The update processor merges a newer version of a federated ``Note`` or
``Question`` into the local status: media, poll, text fields, hashtags,
mentions and emoji are reconciled in one transaction under a per-URI lease
lock, and an edit history entry is appended. Fan-out and preview refreshes
run after the commit and never undo it.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Mapping
from datetime import datetime
from enum import Enum
from typing import Any

import redis
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from status_sync.core.errors import TRANSIENT_ERRORS, RaceConditionError
from status_sync.core.settings import settings
from status_sync.db.time import as_utc, utcnow
from status_sync.models import Status
from status_sync.schemas.document import RemoteDocument, parse_document
from status_sync.services.collaborators import (
    AccountFetcher,
    AccountResolver,
    DomainBlockPolicy,
    LocalAccountResolver,
    MediaPolicy,
    RemoteAccountFetcher,
)
from status_sync.services.context import MergeContext
from status_sync.services.edit_history import EditHistoryRecorder
from status_sync.services.extractors import (
    expected_type,
    language_from_content,
    parse_timestamp,
    text_from_content,
    text_from_summary,
)
from status_sync.services.jobs import JobScheduler, RedisJobQueue
from status_sync.services.locking import Locker, RedisLocker
from status_sync.services.media import MediaReconciler
from status_sync.services.metadata import MetadataReconciler
from status_sync.services.polls import PollReconciler

logger = logging.getLogger(__name__)

_AFTER_COMMIT_ERRORS = (*TRANSIENT_ERRORS, SQLAlchemyError)


class ProcessResult(str, Enum):
    """Outcome of processing one remote update."""

    APPLIED = "applied"
    SKIPPED = "skipped"


class ProcessStatusService:
    """Merge remote status updates into local statuses.

    All collaborators are injected so the merge can run against fakes; see
    :func:`build_process_status_service` for the production wiring.
    """

    def __init__(
        self,
        *,
        locker: Locker,
        scheduler: JobScheduler,
        account_resolver: AccountResolver,
        account_fetcher: AccountFetcher,
        media_policy: MediaPolicy,
        clock: Callable[[], datetime] = utcnow,
        lock_lease_seconds: float | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.locker = locker
        self.scheduler = scheduler
        self.media_policy = media_policy
        self.clock = clock
        self.lock_lease_seconds = (
            settings.lock_lease_seconds if lock_lease_seconds is None else lock_lease_seconds
        )
        self.rng = rng or random.Random()

        self.media = MediaReconciler()
        self.polls = PollReconciler()
        self.metadata = MetadataReconciler(
            account_resolver=account_resolver,
            account_fetcher=account_fetcher,
        )
        self.history = EditHistoryRecorder()

    def call(self, session: Session, status: Status, document: RemoteDocument) -> ProcessResult:
        """Apply ``document`` to ``status`` if it is applicable and newer.

        Raises:
            RaceConditionError: If another worker is updating the same resource.
            SQLAlchemyError: If the merge could not be stored; nothing is kept.
        """
        if not expected_type(document):
            logger.debug("Ignoring update of %s with type %r", document.id, document.type)
            return ProcessResult.SKIPPED

        if self._already_updated_more_recently(status, document):
            logger.info("Ignoring stale update of %s (updated %s)", document.id, document.updated)
            return ProcessResult.SKIPPED

        lock_key = self.lock_key(document)
        token = self.locker.try_acquire(lock_key, self.lock_lease_seconds)
        if token is None:
            raise RaceConditionError(f"Lock {lock_key} is held by another worker")

        try:
            context = self._merge(session, status, document)
        finally:
            self.locker.release(token)

        logger.info("Applied update of %s to status %s", document.id, status.id)
        self._after_commit(session, context)
        return ProcessResult.APPLIED

    @staticmethod
    def lock_key(document: RemoteDocument) -> str:
        """Return the lease key shared with the code creating statuses."""
        return f"create:{document.id}"

    @staticmethod
    def _already_updated_more_recently(status: Status, document: RemoteDocument) -> bool:
        edited_at = as_utc(status.edited_at)
        updated = parse_timestamp(document.updated)
        return edited_at is not None and updated is not None and edited_at >= updated

    def _merge(self, session: Session, status: Status, document: RemoteDocument) -> MergeContext:
        try:
            context = MergeContext(
                status=status,
                document=document,
                now=self.clock(),
                media_rejected=self.media_policy.reject_media(session, status.account.domain),
                previous_text=status.text,
            )

            self.history.record_previous_edit(session, status)

            if self.media.reconcile(session, context):
                context.media_attachments_changed = True
            if self.polls.reconcile(session, context):
                context.media_attachments_changed = True

            self._update_immediate_attributes(session, context)
            self.metadata.reconcile(session, context)

            self.history.record_edit(
                session,
                status,
                media_attachments_changed=context.media_attachments_changed,
            )
            session.commit()
        except Exception:
            session.rollback()
            logger.error("Rolled back update of %s", document.id, exc_info=True)
            raise
        return context

    def _update_immediate_attributes(self, session: Session, context: MergeContext) -> None:
        status = context.status
        document = context.document

        status.text = text_from_content(document) or ""
        status.spoiler_text = text_from_summary(document) or ""
        status.sensitive = bool(context.account.sensitized or document.sensitive)
        status.language = language_from_content(document)

        edited_at = parse_timestamp(document.updated) or context.now
        previous_edited_at = as_utc(status.edited_at)
        if previous_edited_at is not None and previous_edited_at > edited_at:
            edited_at = previous_edited_at
        status.edited_at = edited_at
        session.flush()

    def _after_commit(self, session: Session, context: MergeContext) -> None:
        status = context.status
        status_id = status.id
        text_changed = status.text != context.previous_text
        has_spoiler = bool(status.spoiler_text)

        for attachment_id in context.pending_media_downloads:
            self._best_effort("media download", self.scheduler.schedule_media_download, attachment_id)
        for emoji_id in context.pending_emoji_downloads:
            self._best_effort("emoji download", self.scheduler.schedule_emoji_download, emoji_id)

        if text_changed or has_spoiler:
            try:
                status.preview_cards.clear()
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.warning("Could not reset preview cards of status %s: %s", status_id, exc)

        if not has_spoiler:
            delay = self.rng.randint(*settings.link_crawl_delay_range)
            self._best_effort(
                "link preview refresh",
                self.scheduler.schedule_link_preview_refresh,
                status_id,
                delay,
            )

        self._best_effort("broadcast", self.scheduler.broadcast_update, status_id)

    @staticmethod
    def _best_effort(description: str, effect: Callable[..., Any], *args: Any) -> None:
        try:
            effect(*args)
        except _AFTER_COMMIT_ERRORS as exc:
            logger.warning("Failed to schedule %s%s: %s", description, args, exc)


def build_process_status_service(
    *,
    redis_url: str | None = None,
    account_fetcher: AccountFetcher | None = None,
) -> ProcessStatusService:
    """Wire the update processor with the Redis, SQL and HTTP collaborators."""
    client = redis.Redis.from_url(redis_url or settings.redis_url, decode_responses=True)
    return ProcessStatusService(
        locker=RedisLocker(client),
        scheduler=RedisJobQueue(client),
        account_resolver=LocalAccountResolver(),
        account_fetcher=account_fetcher or RemoteAccountFetcher(),
        media_policy=DomainBlockPolicy(),
    )


def process_status_update(
    session: Session,
    status_uri: str,
    payload: Mapping[str, Any],
    *,
    service: ProcessStatusService | None = None,
) -> ProcessResult:
    """Apply a delivered update payload to the status stored under ``status_uri``.

    Updates for statuses this server never stored are skipped; creating them
    is not the update processor's job.

    Raises:
        pydantic.ValidationError: If the payload is not a usable document.
        RaceConditionError: If the status is being updated concurrently.
    """
    status = session.scalars(select(Status).where(Status.uri == status_uri)).first()
    if status is None:
        logger.info("Ignoring update for unknown status %s", status_uri)
        return ProcessResult.SKIPPED

    document = parse_document(payload)
    service = service or build_process_status_service()
    return service.call(session, status, document)
