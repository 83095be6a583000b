"""Append-only edit history for statuses."""

from __future__ import annotations

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from status_sync.models import Status, StatusEdit


class EditHistoryRecorder:
    """Record snapshots of a status around each applied update."""

    def record_previous_edit(self, session: Session, status: Status) -> StatusEdit | None:
        """Snapshot the original content the first time a status is edited.

        Statuses that already have history are left alone, since every later
        update appends its own entry.
        """
        has_edits = session.scalar(select(exists().where(StatusEdit.status_id == status.id)))
        if has_edits:
            return None

        edit = StatusEdit(
            status_id=status.id,
            account_id=status.account_id,
            text=status.text,
            spoiler_text=status.spoiler_text,
            media_attachments_changed=False,
            created_at=status.created_at,
        )
        session.add(edit)
        session.flush()
        return edit

    def record_edit(
        self,
        session: Session,
        status: Status,
        *,
        media_attachments_changed: bool,
    ) -> StatusEdit:
        """Append the post-update snapshot, stamped with the edit time."""
        edit = StatusEdit(
            status_id=status.id,
            account_id=status.account_id,
            text=status.text,
            spoiler_text=status.spoiler_text,
            media_attachments_changed=media_attachments_changed,
            created_at=status.edited_at,
        )
        session.add(edit)
        session.flush()
        return edit
