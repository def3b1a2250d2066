import asyncio
import uuid

import pytest

from property_inbox.core.exceptions import Forbidden, NotFound
from property_inbox.crud import conversation_crud, message_crud
from property_inbox.schema.inbox import DraftCreateBody


def thread(messages, viewer, conversation_id, drafts=False):
    return asyncio.run(messages.list_thread(viewer, conversation_id, drafts=drafts))


def thread_count(db, conversation_id):
    conversation = conversation_crud.get_by_id(db, conversation_id=conversation_id)
    db.refresh(conversation)
    return conversation.thread_count


@pytest.fixture
def pair(make_user):
    return make_user("Avery", "Manager"), make_user("Blake", "Tenant")


def test_edit_keeps_position_and_stamps_edited_at(pair, start_conversation, send, messages, messaging):
    a, b = pair
    conv = start_conversation(a, [b])
    first = send(b, conv.id, "Typo in this")
    send(a, conv.id, "Reply")

    edited = asyncio.run(messaging.edit_message(b, uuid.UUID(first.id), "Fixed text"))

    assert edited.edited_at is not None
    assert edited.created_at == first.created_at
    assert [m.content for m in thread(messages, a, conv.id)] == ["Hello", "Fixed text", "Reply"]


def test_only_sender_can_edit_or_delete(pair, start_conversation, send, messaging):
    a, b = pair
    conv = start_conversation(a, [b])
    sent = send(b, conv.id, "mine")
    with pytest.raises(Forbidden):
        asyncio.run(messaging.edit_message(a, uuid.UUID(sent.id), "hijack"))
    with pytest.raises(Forbidden):
        asyncio.run(messaging.delete_message(a, uuid.UUID(sent.id)))


def test_soft_delete_hides_message_but_keeps_row(db, pair, start_conversation, send, messages, messaging, conversations):
    a, b = pair
    conv = start_conversation(a, [b])
    keep = send(b, conv.id, "keep me")
    gone = send(b, conv.id, "delete me")
    assert thread_count(db, conv.id) == 3

    asyncio.run(messaging.delete_message(b, uuid.UUID(gone.id)))

    assert [m.id for m in thread(messages, a, conv.id)][-1] == keep.id
    page = asyncio.run(messages.get_page(a, conv.id, page=0))
    assert gone.id not in [m.id for m in page.items]
    item = asyncio.run(conversations.get_conversation(a, conv.id))
    assert item.last_message.id == uuid.UUID(keep.id)
    assert item.thread_count == 2

    row = message_crud.get_by_id(db, message_id=uuid.UUID(gone.id))
    assert row is not None
    assert row.deleted_at is not None
    assert row.content == "delete me"
    fetched = messages.get_message(a, uuid.UUID(gone.id))
    assert fetched.deleted_at is not None


def test_deleted_message_cannot_be_edited_or_deleted_again(pair, start_conversation, send, messaging):
    a, b = pair
    conv = start_conversation(a, [b])
    sent = send(b, conv.id, "short lived")
    asyncio.run(messaging.delete_message(b, uuid.UUID(sent.id)))
    with pytest.raises(NotFound):
        asyncio.run(messaging.edit_message(b, uuid.UUID(sent.id), "again"))
    with pytest.raises(NotFound):
        asyncio.run(messaging.delete_message(b, uuid.UUID(sent.id)))


def test_drafts_are_private_and_do_not_count(db, pair, start_conversation, messages, messaging):
    a, b = pair
    conv = start_conversation(a, [b])
    draft = asyncio.run(messaging.save_draft(b, conv.id, DraftCreateBody(content="half written")))

    assert draft.is_draft
    assert thread_count(db, conv.id) == 1
    assert [m.content for m in thread(messages, b, conv.id)] == ["Hello"]
    assert [m.content for m in thread(messages, b, conv.id, drafts=True)] == ["half written"]
    assert thread(messages, a, conv.id, drafts=True) == []
    with pytest.raises(NotFound):
        messages.get_message(a, uuid.UUID(draft.id))


def test_deleting_a_draft_leaves_thread_count(db, pair, start_conversation, messaging):
    a, b = pair
    conv = start_conversation(a, [b])
    draft = asyncio.run(messaging.save_draft(b, conv.id, DraftCreateBody(content="never mind")))
    asyncio.run(messaging.delete_message(b, uuid.UUID(draft.id)))
    assert thread_count(db, conv.id) == 1


def test_search_only_sees_live_sent_messages_in_own_conversations(make_user, start_conversation, send, messages,
                                                                  messaging):
    a, b, c = make_user("A"), make_user("B"), make_user("C")
    mine = start_conversation(a, [b])
    other = start_conversation(b, [c])
    hit = send(b, mine.id, "The Boiler is leaking")
    gone = send(b, mine.id, "boiler again")
    asyncio.run(messaging.delete_message(b, uuid.UUID(gone.id)))
    asyncio.run(messaging.save_draft(a, mine.id, DraftCreateBody(content="boiler draft")))
    send(c, other.id, "boiler in unit 4")

    results = asyncio.run(messages.search(a, "boiler"))
    assert [m.id for m in results] == [hit.id]
    assert asyncio.run(messages.search(a, "   ")) == []
