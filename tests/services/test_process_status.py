from __future__ import annotations

from datetime import UTC, datetime

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from status_sync.core.errors import RaceConditionError
from status_sync.db.time import as_utc
from status_sync.models import (
    CustomEmoji,
    MediaAttachment,
    Mention,
    Poll,
    PreviewCard,
    StatusEdit,
)
from status_sync.schemas.document import parse_document
from status_sync.services.collaborators import LocalAccountResolver, RemoteAccountFetcher
from status_sync.services.jobs import RedisJobQueue
from status_sync.services.locking import RedisLocker
from status_sync.services.process_status import (
    ProcessResult,
    ProcessStatusService,
    build_process_status_service,
    process_status_update,
)

from tests.conftest import CREATED_AT, NOW, REMOTE_DOMAIN


def _edits(db_session, status):
    return db_session.scalars(
        select(StatusEdit).where(StatusEdit.status_id == status.id).order_by(StatusEdit.id)
    ).all()


def _linked_media(db_session, status):
    return db_session.scalars(
        select(MediaAttachment)
        .where(MediaAttachment.status_id == status.id)
        .order_by(MediaAttachment.id)
    ).all()


def _attachment(db_session, status, url):
    attachment = MediaAttachment(account_id=status.account_id, status_id=status.id, remote_url=url)
    db_session.add(attachment)
    db_session.commit()
    return attachment


def test_applies_update_and_records_history(db_session, service, status, note_payload):
    result = service.call(db_session, status, parse_document(note_payload()))

    assert result is ProcessResult.APPLIED
    db_session.expire_all()
    assert status.text == "<p>Edited text</p>"
    assert status.language == "und"
    assert as_utc(status.edited_at) == datetime(2024, 5, 1, 10, 0, tzinfo=UTC)

    edits = _edits(db_session, status)
    assert [edit.text for edit in edits] == ["Original text", "<p>Edited text</p>"]
    assert as_utc(edits[0].created_at) == CREATED_AT
    assert as_utc(edits[1].created_at) == as_utc(status.edited_at)
    assert edits[0].media_attachments_changed is False


def test_second_delivery_of_same_document_is_skipped(db_session, service, status, note_payload):
    document = parse_document(note_payload())

    assert service.call(db_session, status, document) is ProcessResult.APPLIED
    assert service.call(db_session, status, document) is ProcessResult.SKIPPED

    assert len(_edits(db_session, status)) == 2


def test_existing_history_gets_single_new_entry(db_session, service, status, note_payload):
    service.call(db_session, status, parse_document(note_payload()))
    later = note_payload(content="Third version", updated="2024-05-01T11:00:00Z")

    assert service.call(db_session, status, parse_document(later)) is ProcessResult.APPLIED

    edits = _edits(db_session, status)
    assert [edit.text for edit in edits] == ["Original text", "<p>Edited text</p>", "Third version"]


def test_stale_update_is_skipped(db_session, service, make_status, note_payload):
    status = make_status(edited_at=datetime(2024, 5, 1, 11, 0, tzinfo=UTC))
    payload = note_payload(id=status.uri, updated="2024-05-01T10:00:00Z")

    assert service.call(db_session, status, parse_document(payload)) is ProcessResult.SKIPPED
    assert status.text == "Original text"
    assert _edits(db_session, status) == []


def test_unparsable_updated_is_not_stale(db_session, service, make_status, note_payload):
    status = make_status(edited_at=datetime(2024, 5, 1, 11, 0, tzinfo=UTC))
    payload = note_payload(id=status.uri, updated="yesterday-ish")

    assert service.call(db_session, status, parse_document(payload)) is ProcessResult.APPLIED
    assert as_utc(status.edited_at) == NOW


@pytest.mark.parametrize("kind", ["Person", "Article", ["Document", "Image"]])
def test_inapplicable_type_is_skipped(db_session, service, status, note_payload, kind):
    result = service.call(db_session, status, parse_document(note_payload(type=kind)))

    assert result is ProcessResult.SKIPPED
    assert _edits(db_session, status) == []


def test_type_list_containing_note_is_applied(db_session, service, status, note_payload):
    payload = note_payload(type=["Object", "Note"])

    assert service.call(db_session, status, parse_document(payload)) is ProcessResult.APPLIED


def test_busy_lock_raises_race_condition(db_session, service, locker, status, note_payload):
    document = parse_document(note_payload())
    held = locker.try_acquire(service.lock_key(document), 900)

    with pytest.raises(RaceConditionError):
        service.call(db_session, status, document)

    db_session.expire_all()
    assert status.text == "Original text"
    assert _edits(db_session, status) == []
    assert locker.try_acquire(service.lock_key(document), 900) is None
    locker.release(held)


def test_lock_is_released_after_merge(db_session, service, locker, status, note_payload):
    document = parse_document(note_payload())

    service.call(db_session, status, document)

    assert locker.try_acquire(service.lock_key(document), 900) is not None


def test_storage_failure_rolls_back_everything(
    db_session, service, locker, scheduler, status, note_payload, mocker
):
    document = parse_document(note_payload(attachment=[{"url": "https://cdn.example/new.png"}]))
    mocker.patch.object(
        service.metadata,
        "reconcile",
        side_effect=OperationalError("UPDATE statuses", {}, Exception("disk I/O error")),
    )

    with pytest.raises(OperationalError):
        service.call(db_session, status, document)

    assert status.text == "Original text"
    assert _edits(db_session, status) == []
    assert db_session.scalar(select(func.count(MediaAttachment.id))) == 0
    assert locker.try_acquire(service.lock_key(document), 900) is not None
    assert scheduler.broadcasts == []


def test_rolled_back_merge_queues_no_emoji_download(
    db_session, service, scheduler, status, note_payload, mocker
):
    emoji = {"type": "Emoji", "name": ":blob:", "icon": {"url": "https://cdn.example/blob.png"}}
    document = parse_document(note_payload(tag=[emoji]))
    mocker.patch.object(
        service.history,
        "record_edit",
        side_effect=OperationalError("INSERT INTO status_edits", {}, Exception("disk I/O error")),
    )

    with pytest.raises(OperationalError):
        service.call(db_session, status, document)

    assert db_session.scalars(select(CustomEmoji)).all() == []
    assert scheduler.emoji_downloads == []


def test_emoji_download_is_queued_after_commit(db_session, service, scheduler, status, note_payload):
    emoji = {"type": "Emoji", "name": ":blob:", "icon": {"url": "https://cdn.example/blob.png"}}

    service.call(db_session, status, parse_document(note_payload(tag=[emoji])))

    stored = db_session.scalars(select(CustomEmoji)).one()
    assert scheduler.emoji_downloads == [stored.id]


@pytest.mark.parametrize(
    ("href", "actor_id"),
    [
        ("@bob", "https://other.example/users/bob"),
        ("https://other.example/users/bob", "https://[bad"),
    ],
)
def test_unusable_mention_is_dropped(
    db_session, locker, scheduler, media_policy, status, note_payload, href, actor_id
):
    actor = {"id": actor_id, "type": "Person", "preferredUsername": "bob"}
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, json=actor)))
    service = ProcessStatusService(
        locker=locker,
        scheduler=scheduler,
        account_resolver=LocalAccountResolver(),
        account_fetcher=RemoteAccountFetcher(client),
        media_policy=media_policy,
        clock=lambda: NOW,
    )
    payload = note_payload(tag=[{"type": "Mention", "href": href}])

    result = service.call(db_session, status, parse_document(payload))

    assert result is ProcessResult.APPLIED
    db_session.expire_all()
    assert status.mentions == []
    assert status.text == "<p>Edited text</p>"


def test_media_set_is_reconciled(db_session, service, scheduler, status, note_payload):
    a = _attachment(db_session, status, "https://cdn.example/a.png")
    b = _attachment(db_session, status, "https://cdn.example/b.png")
    payload = note_payload(
        attachment=[
            {"type": "Document", "url": "https://cdn.example/b.png", "mediaType": "image/png"},
            {"type": "Document", "url": "https://cdn.example/c.png", "mediaType": "image/png"},
        ]
    )

    service.call(db_session, status, parse_document(payload))

    db_session.expire_all()
    linked = _linked_media(db_session, status)
    assert [item.remote_url for item in linked] == ["https://cdn.example/b.png", "https://cdn.example/c.png"]
    assert linked[0].id == b.id
    # Dropped media stays with the account.
    assert db_session.get(MediaAttachment, a.id).status_id is None
    assert scheduler.media_downloads == [linked[1].id]
    assert _edits(db_session, status)[-1].media_attachments_changed is True


def test_attachment_cap(db_session, service, status, note_payload):
    payload = note_payload(
        attachment=[{"url": f"https://cdn.example/{index}.png"} for index in range(7)]
    )

    service.call(db_session, status, parse_document(payload))

    linked = _linked_media(db_session, status)
    assert [item.remote_url for item in linked] == [
        f"https://cdn.example/{index}.png" for index in range(5)
    ]


def test_rejected_media_is_stored_but_not_downloaded(
    db_session, service, scheduler, media_policy, status, note_payload
):
    media_policy.rejected = True
    payload = note_payload(
        attachment=[{"url": "https://cdn.example/a.png"}],
        tag=[
            {
                "type": "Emoji",
                "name": ":blob:",
                "icon": {"type": "Image", "url": "https://cdn.example/blob.png"},
            }
        ],
    )

    service.call(db_session, status, parse_document(payload))

    assert len(_linked_media(db_session, status)) == 1
    assert scheduler.media_downloads == []
    assert scheduler.emoji_downloads == []


def test_poll_is_replaced_when_labels_change(db_session, service, status, note_payload):
    old = Poll(account_id=status.account_id, status_id=status.id, options=["a", "b"])
    db_session.add(old)
    db_session.commit()
    old_id = old.id
    payload = note_payload(type="Question", oneOf=[{"name": "a"}, {"name": "c"}])

    service.call(db_session, status, parse_document(payload))

    db_session.expire_all()
    assert db_session.get(Poll, old_id) is None
    assert status.poll.options == ["a", "c"]
    assert status.poll.id != old_id
    assert _edits(db_session, status)[-1].media_attachments_changed is True


def test_poll_is_reused_when_labels_match(db_session, service, status, note_payload):
    poll = Poll(account_id=status.account_id, status_id=status.id, options=["a", "b"])
    db_session.add(poll)
    db_session.commit()
    poll_id = poll.id
    payload = note_payload(
        type="Question",
        anyOf=[{"name": "a", "replies": {"totalItems": 3}}, {"content": "b"}],
        endTime="2024-05-02T12:00:00Z",
        votersCount=3,
    )

    service.call(db_session, status, parse_document(payload))

    db_session.expire_all()
    assert status.poll.id == poll_id
    assert status.poll.multiple is True
    assert status.poll.cached_tallies == [3, 0]
    assert status.poll.voters_count == 3
    assert as_utc(status.poll.expires_at) == datetime(2024, 5, 2, 12, 0, tzinfo=UTC)
    assert _edits(db_session, status)[-1].media_attachments_changed is False


def test_poll_is_removed_when_document_has_none(db_session, service, status, note_payload):
    poll = Poll(account_id=status.account_id, status_id=status.id, options=["a", "b"])
    db_session.add(poll)
    db_session.commit()

    service.call(db_session, status, parse_document(note_payload()))

    db_session.expire_all()
    assert status.poll is None
    assert db_session.scalar(select(func.count(Poll.id))) == 0


def test_vanished_mentions_become_silent(db_session, service, make_account, status, note_payload):
    bob = make_account("bob")
    carol = make_account("carol")
    db_session.add(Mention(status_id=status.id, account_id=bob.id, silent=False))
    db_session.commit()
    payload = note_payload(tag=[{"type": "Mention", "href": carol.uri, "name": "@carol"}])

    service.call(db_session, status, parse_document(payload))

    db_session.expire_all()
    mentions = {mention.account_id: mention for mention in status.mentions}
    assert set(mentions) == {bob.id, carol.id}
    assert mentions[bob.id].silent is True
    assert mentions[carol.id].silent is False


def test_sensitized_account_forces_sensitive(
    db_session, service, remote_account, status, note_payload
):
    remote_account.sensitized = True
    db_session.commit()

    service.call(db_session, status, parse_document(note_payload(sensitive=False)))

    assert status.sensitive is True


def test_text_and_language_fall_back_to_language_maps(db_session, service, status, note_payload):
    payload = note_payload(content=None, contentMap={"de": "Hallo"}, summaryMap={"fr": "Attention"})

    service.call(db_session, status, parse_document(payload))

    assert status.text == "Hallo"
    assert status.spoiler_text == "Attention"
    assert status.language == "de"


def test_post_commit_effects_without_spoiler(db_session, service, scheduler, status, note_payload):
    service.call(db_session, status, parse_document(note_payload()))

    assert scheduler.broadcasts == [status.id]
    assert len(scheduler.link_preview_refreshes) == 1
    status_id, delay = scheduler.link_preview_refreshes[0]
    assert status_id == status.id
    assert 1 <= delay <= 59


def test_spoiler_clears_preview_cards_and_skips_refresh(
    db_session, service, scheduler, status, note_payload
):
    card = PreviewCard(url="https://news.example/story")
    card.statuses.append(status)
    db_session.add(card)
    db_session.commit()
    payload = note_payload(content="Original text", summary="cw: spoilers")

    service.call(db_session, status, parse_document(payload))

    db_session.expire_all()
    assert status.preview_cards == []
    assert scheduler.link_preview_refreshes == []


def test_unchanged_text_keeps_preview_cards(db_session, service, status, note_payload):
    card = PreviewCard(url="https://news.example/story")
    card.statuses.append(status)
    db_session.add(card)
    db_session.commit()

    service.call(db_session, status, parse_document(note_payload(content="Original text")))

    db_session.expire_all()
    assert [item.url for item in status.preview_cards] == ["https://news.example/story"]


def test_failing_side_effect_does_not_undo_merge(
    db_session, service, scheduler, status, note_payload, mocker
):
    mocker.patch.object(scheduler, "broadcast_update", side_effect=RedisConnectionError("down"))

    result = service.call(db_session, status, parse_document(note_payload()))

    assert result is ProcessResult.APPLIED
    db_session.expire_all()
    assert status.text == "<p>Edited text</p>"


def test_process_status_update_looks_up_status(db_session, service, status, note_payload):
    result = process_status_update(db_session, status.uri, note_payload(), service=service)

    assert result is ProcessResult.APPLIED
    assert status.text == "<p>Edited text</p>"


def test_process_status_update_skips_unknown_status(db_session, service, note_payload):
    unknown = f"https://{REMOTE_DOMAIN}/notes/unknown"

    result = process_status_update(db_session, unknown, note_payload(id=unknown), service=service)

    assert result is ProcessResult.SKIPPED


def test_build_process_status_service_wires_redis(mocker):
    from_url = mocker.patch("status_sync.services.process_status.redis.Redis.from_url")

    service = build_process_status_service(redis_url="redis://cache.internal:6379/2")

    from_url.assert_called_once_with("redis://cache.internal:6379/2", decode_responses=True)
    assert isinstance(service.locker, RedisLocker)
    assert isinstance(service.scheduler, RedisJobQueue)
