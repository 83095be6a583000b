"""Reconcile a status's poll with the remote question."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from status_sync.models import Poll
from status_sync.services.context import MergeContext
from status_sync.services.extractors import poll_expiry, poll_shape_from

logger = logging.getLogger(__name__)


class PollReconciler:
    """Reuse, replace or remove the poll attached to a status.

    A poll is only reused when its option labels are identical and in the same
    order, because votes reference options by position.
    """

    def reconcile(self, session: Session, context: MergeContext) -> bool:
        """Apply the document's poll to the status.

        Returns:
            True if the status ends up with a different poll than before,
            including gaining or losing one.
        """
        status = context.status
        previous = status.poll
        shape = poll_shape_from(context.document)

        if shape is None:
            if previous is not None:
                self._destroy(session, context, previous)
            return previous is not None

        if previous is not None and list(previous.options) == shape.options:
            poll = previous
        else:
            if previous is not None:
                self._destroy(session, context, previous)
            poll = Poll(account_id=status.account_id, options=shape.options)
            session.add(poll)
            status.poll = poll

        poll.multiple = shape.multiple
        poll.expires_at = poll_expiry(shape, context.now)
        poll.voters_count = shape.voters_count
        poll.cached_tallies = list(shape.tallies)
        session.flush()

        if poll is not previous:
            logger.debug("Replaced poll of status %s", status.id)
        return poll is not previous

    @staticmethod
    def _destroy(session: Session, context: MergeContext, poll: Poll) -> None:
        context.status.poll = None
        session.delete(poll)
        session.flush()
