import asyncio

import pytest

from property_inbox.core.exceptions import NotAuthenticated, NotFound
from property_inbox.crud import delivery_crud, participant_crud
from property_inbox.model import Message, MessageDelivery
from property_inbox.schema.inbox import DraftCreateBody


def unread(conversations, viewer, conversation_id):
    return asyncio.run(conversations.get_conversation(viewer, conversation_id)).unread_count


def literal_unread(db, viewer, conversation_id):
    return (
        db.query(MessageDelivery)
        .join(Message, Message.id == MessageDelivery.message_id)
        .filter(
            Message.conversation_id == conversation_id,
            Message.is_draft.is_(False),
            MessageDelivery.user_id == viewer,
            MessageDelivery.read_at.is_(None),
        )
        .count()
    )


def test_unread_count_matches_unread_delivery_rows(db, make_user, start_conversation, send, messaging, conversations):
    a, b, c = make_user("A"), make_user("B"), make_user("C")
    conv = start_conversation(a, [b, c])
    send(b, conv.id, "one")
    send(b, conv.id, "two")
    send(c, conv.id, "three")
    asyncio.run(messaging.save_draft(b, conv.id, DraftCreateBody(content="not sent")))

    for viewer in (a, b, c):
        assert unread(conversations, viewer, conv.id) == literal_unread(db, viewer, conv.id)
    assert unread(conversations, a, conv.id) == 3
    assert unread(conversations, b, conv.id) == 2
    assert unread(conversations, c, conv.id) == 3


def test_mark_as_read_is_idempotent_and_per_viewer(db, make_user, start_conversation, send, messaging, conversations):
    a, b, c = make_user("A"), make_user("B"), make_user("C")
    conv = start_conversation(a, [b, c])
    send(a, conv.id, "follow-up")

    first = asyncio.run(messaging.mark_as_read(b, conv.id))
    assert first.marked == 2
    assert unread(conversations, b, conv.id) == 0

    second = asyncio.run(messaging.mark_as_read(b, conv.id))
    assert second.marked == 0
    assert unread(conversations, b, conv.id) == 0

    assert unread(conversations, c, conv.id) == 2


def test_mark_as_read_stamps_participant_last_read_at(db, make_user, start_conversation, messaging):
    a, b = make_user("A"), make_user("B")
    conv = start_conversation(a, [b])
    part = participant_crud.get_by_conversation_and_user(db, conversation_id=conv.id, user_id=b)
    assert part.last_read_at is None

    asyncio.run(messaging.mark_as_read(b, conv.id))
    db.refresh(part)
    assert part.last_read_at is not None


def test_new_message_after_read_is_unread_again(make_user, start_conversation, send, messaging, conversations):
    a, b = make_user("A"), make_user("B")
    conv = start_conversation(a, [b])
    asyncio.run(messaging.mark_as_read(b, conv.id))
    assert unread(conversations, b, conv.id) == 0

    send(a, conv.id, "another")
    assert unread(conversations, b, conv.id) == 1


def test_unread_counts_are_batched_per_conversation(db, make_user, start_conversation, send):
    a, b = make_user("A"), make_user("B")
    first = start_conversation(a, [b])
    second = start_conversation(a, [b])
    send(a, second.id, "more")

    counts = delivery_crud.unread_counts(db, conversation_ids=[first.id, second.id], viewer_id=b)
    assert counts == {first.id: 1, second.id: 2}


def test_mark_as_read_requires_membership(make_user, start_conversation, messaging):
    a, b, outsider = make_user("A"), make_user("B"), make_user("X")
    conv = start_conversation(a, [b])
    with pytest.raises(NotFound):
        asyncio.run(messaging.mark_as_read(outsider, conv.id))
    with pytest.raises(NotAuthenticated):
        asyncio.run(messaging.mark_as_read(None, conv.id))
