import asyncio
from datetime import timedelta

import pytest

from property_inbox.core.exceptions import InvalidFilter, NotAuthenticated
from property_inbox.crud import conversation_crud
from property_inbox.schema.inbox import DraftCreateBody
from property_inbox.utils.time import utcnow


def ids(items):
    return [c.id for c in items]


def listing(conversations, viewer, inbox_filter="inbox", search=None):
    return asyncio.run(conversations.list_conversations(viewer, inbox_filter=inbox_filter, search=search))


@pytest.fixture
def people(make_user):
    return make_user("Avery", "Manager"), make_user("Blake", "Tenant"), make_user("Casey", "Vendor")


def test_inbox_excludes_own_and_sent_only_own(people, start_conversation, conversations):
    a, b, c = people
    from_a = start_conversation(a, [b, c], title="From A")
    from_b = start_conversation(b, [a], title="From B")

    inbox = listing(conversations, a, "inbox")
    sent = listing(conversations, a, "sent")

    assert ids(inbox) == [from_b.id]
    assert all(item.created_by != a for item in inbox)
    assert ids(sent) == [from_a.id]
    assert all(item.created_by == a for item in sent)


def test_conversations_of_others_are_invisible(people, start_conversation, conversations):
    a, b, c = people
    start_conversation(a, [b])
    assert listing(conversations, c, "inbox") == []
    assert listing(conversations, c, "sent") == []


def test_archived_leaves_inbox_and_sent(people, start_conversation, conversations, messaging):
    a, b, _ = people
    mine = start_conversation(a, [b])
    theirs = start_conversation(b, [a])
    asyncio.run(messaging.set_archived(a, mine.id, True))
    asyncio.run(messaging.set_archived(a, theirs.id, True))

    assert listing(conversations, a, "inbox") == []
    assert listing(conversations, a, "sent") == []
    assert set(ids(listing(conversations, a, "archived"))) == {mine.id, theirs.id}


def test_starred(people, start_conversation, conversations, messaging):
    a, b, _ = people
    starred = start_conversation(b, [a])
    start_conversation(b, [a])
    asyncio.run(messaging.set_starred(a, starred.id, True))
    asyncio.run(messaging.set_starred(a, starred.id, True))

    assert ids(listing(conversations, a, "starred")) == [starred.id]


def test_drafts_filter_is_empty_without_drafts(people, start_conversation, conversations):
    a, b, _ = people
    start_conversation(b, [a])
    start_conversation(a, [b])
    assert listing(conversations, a, "drafts") == []


def test_drafts_filter_shows_own_draft_as_last_message(people, start_conversation, conversations, messaging):
    a, b, _ = people
    conv = start_conversation(b, [a], content="Can you check the boiler?")
    start_conversation(b, [a])
    asyncio.run(messaging.save_draft(a, conv.id, DraftCreateBody(content="Draft reply")))

    drafts_for_a = listing(conversations, a, "drafts")
    assert ids(drafts_for_a) == [conv.id]
    assert drafts_for_a[0].last_message.content == "Draft reply"
    assert drafts_for_a[0].last_message.is_draft

    # Other filters never preview the draft, and b has no drafts at all.
    inbox_item = next(i for i in listing(conversations, a, "inbox") if i.id == conv.id)
    assert inbox_item.last_message.content == "Can you check the boiler?"
    assert listing(conversations, b, "drafts") == []


def test_type_filters(people, start_conversation, conversations):
    a, b, _ = people
    maint = start_conversation(b, [a], type="maintenance")
    prop = start_conversation(b, [a], type="property")
    tenant = start_conversation(b, [a], type="tenant")
    start_conversation(b, [a], type="direct")

    assert ids(listing(conversations, a, "maintenance")) == [maint.id]
    assert ids(listing(conversations, a, "properties")) == [prop.id]
    assert ids(listing(conversations, a, "tenants")) == [tenant.id]


def test_urgent_filter_matches_high_priority_or_urgent_type(people, start_conversation, conversations):
    a, b, _ = people
    high = start_conversation(b, [a], priority="high")
    typed = start_conversation(b, [a], type="urgent")
    start_conversation(b, [a])
    assert set(ids(listing(conversations, a, "urgent"))) == {high.id, typed.id}


def test_unknown_filter_is_rejected(people, conversations):
    with pytest.raises(InvalidFilter):
        listing(conversations, people[0], "everything")


def test_listing_requires_viewer(conversations):
    with pytest.raises(NotAuthenticated):
        listing(conversations, None)


def test_search_matches_title_or_sender_name_case_insensitively(people, start_conversation, conversations):
    a, b, c = people
    by_title = start_conversation(b, [a], title="Lease Renewal")
    by_sender = start_conversation(c, [a], title="Invoice")
    start_conversation(b, [a], title="Parking")

    assert ids(listing(conversations, a, search="lease")) == [by_title.id]
    assert ids(listing(conversations, a, search="CASEY")) == [by_sender.id]
    assert listing(conversations, a, search="nothing like this") == []


def test_ordering_by_last_activity_then_creation(db, people, start_conversation, conversations, send):
    a, b, _ = people
    older = start_conversation(b, [a], title="older")
    newer = start_conversation(b, [a], title="newer")
    assert ids(listing(conversations, a)) == [newer.id, older.id]

    send(b, older.id, "bump")
    assert ids(listing(conversations, a)) == [older.id, newer.id]

    # Conversations without activity sort last.
    idle = conversation_crud.get_by_id(db, conversation_id=newer.id)
    conversation_crud.update(db, db_obj=idle, obj_in={"last_message_at": None})
    conversations.cache.clear()
    assert ids(listing(conversations, a)) == [older.id, newer.id]

    conversation_crud.update(
        db,
        db_obj=conversation_crud.get_by_id(db, conversation_id=older.id),
        obj_in={"last_message_at": utcnow() - timedelta(days=1)},
    )
    conversations.cache.clear()
    assert ids(listing(conversations, a)) == [older.id, newer.id]


def test_labels_and_mute_are_private(people, start_conversation, conversations, messaging):
    a, b, _ = people
    conv = start_conversation(b, [a])
    asyncio.run(messaging.add_label(a, conv.id, "lease"))
    asyncio.run(messaging.toggle_mute(a, conv.id))

    mine = listing(conversations, a)[0]
    theirs = listing(conversations, b, "sent")[0]
    assert mine.labels == ["lease", "muted"]
    assert mine.is_muted
    assert theirs.labels == []
    assert not theirs.is_muted
