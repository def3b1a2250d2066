import asyncio
import json
import uuid

import httpx
import pytest
from sqlalchemy.exc import SQLAlchemyError

from property_inbox.cache import keys
from property_inbox.core.exceptions import NotAuthenticated, NotFound, ServiceError
from property_inbox.crud import conversation_crud, delivery_crud, notification_preference_crud, participant_crud
from property_inbox.model import Message
from property_inbox.notify import CommunicationClient
from property_inbox.schema.inbox import MessageCreateBody
from property_inbox.service.messaging_service import MessagingService, is_temp_message_id


def thread(messages, viewer, conversation_id):
    return asyncio.run(messages.list_thread(viewer, conversation_id))


def test_sent_message_is_last_in_thread_with_exact_content(make_user, start_conversation, send, messages):
    a, b = make_user("A"), make_user("B")
    conv = start_conversation(a, [b])
    content = "  Rent is due on the 1st.\n\nThanks!  "

    sent = send(b, conv.id, content)
    items = thread(messages, a, conv.id)

    assert items[-1].id == sent.id
    assert items[-1].content == content
    assert items[-1].sender_name == "B User"
    assert [m.content for m in items] == ["Hello", content]


def test_send_increments_thread_count_and_touches_last_message_at(db, make_user, start_conversation, send):
    a, b = make_user("A"), make_user("B")
    conv = start_conversation(a, [b])
    before = conversation_crud.get_by_id(db, conversation_id=conv.id).last_message_at

    send(b, conv.id, "one")
    send(a, conv.id, "two")

    stored = conversation_crud.get_by_id(db, conversation_id=conv.id)
    db.refresh(stored)
    assert stored.thread_count == 3
    assert stored.last_message_at > before


def test_send_creates_one_delivery_per_active_participant(db, make_user, start_conversation, send):
    a, b, c = make_user("A"), make_user("B"), make_user("C")
    conv = start_conversation(a, [b, c])
    gone = participant_crud.get_by_conversation_and_user(db, conversation_id=conv.id, user_id=c)
    participant_crud.update(db, db_obj=gone, obj_in={"left_at": gone.joined_at})

    sent = send(b, conv.id, "after c left")

    message = db.query(Message).filter(Message.id == uuid.UUID(sent.id)).one()
    rows = {d.user_id: d.read_at for d in message.deliveries}
    assert set(rows) == {a, b}
    assert rows[b] is not None
    assert rows[a] is None


def test_failed_send_restores_cached_thread(db, make_user, start_conversation, messages, messaging, cache, monkeypatch):
    a, b = make_user("A"), make_user("B")
    conv = start_conversation(a, [b])
    before = [m.model_dump() for m in thread(messages, b, conv.id)]
    count_before = db.query(Message).count()

    def boom(*args, **kwargs):
        raise SQLAlchemyError("insert failed")

    monkeypatch.setattr(delivery_crud, "create_for_message", boom)
    body = MessageCreateBody(content="will fail")
    with pytest.raises(ServiceError):
        asyncio.run(messaging.send_message(b, conv.id, body))

    cached = cache.get_query_data(keys.thread(conv.id, b))
    assert [m.model_dump() for m in cached] == before
    assert db.query(Message).count() == count_before
    assert conversation_crud.get_by_id(db, conversation_id=conv.id).thread_count == 1


def test_optimistic_message_is_in_cache_while_insert_runs(make_user, start_conversation, messages, messaging, cache,
                                                          monkeypatch):
    a, b = make_user("A"), make_user("B")
    conv = start_conversation(a, [b])
    thread(messages, b, conv.id)
    seen = {}
    original = participant_crud.list_active_user_ids

    def spy(db, *, conversation_id):
        seen["thread"] = list(cache.get_query_data(keys.thread(conv.id, b)))
        return original(db, conversation_id=conversation_id)

    monkeypatch.setattr(participant_crud, "list_active_user_ids", spy)
    asyncio.run(messaging.send_message(b, conv.id, MessageCreateBody(content="on its way")))

    pending = seen["thread"][-1]
    assert is_temp_message_id(pending.id)
    assert pending.content == "on its way"
    assert pending.sender_name == "B User"

    # After commit the thread is refetched with the persisted id.
    items = thread(messages, b, conv.id)
    assert not is_temp_message_id(items[-1].id)
    assert items[-1].content == "on its way"


def test_send_requires_viewer_and_membership(make_user, start_conversation, messaging):
    a, b, outsider = make_user("A"), make_user("B"), make_user("X")
    conv = start_conversation(a, [b])
    body = MessageCreateBody(content="hi")
    with pytest.raises(NotAuthenticated):
        asyncio.run(messaging.send_message(None, conv.id, body))
    with pytest.raises(NotFound):
        asyncio.run(messaging.send_message(outsider, conv.id, body))


def gateway(handler):
    return CommunicationClient(
        base_url="https://comms.test/api",
        api_key="key",
        transport=httpx.MockTransport(handler),
    )


def test_notify_posts_once_per_other_participant_with_their_channels(db, make_user, start_conversation, cache):
    a = make_user("A")
    b = make_user("B", email="b@example.com")
    c = make_user("C", phone="+15550100")
    conv = start_conversation(a, [b, c])
    notification_preference_crud.upsert(db, user_id=c, obj_in={"email_enabled": False, "sms_enabled": True})
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"data": {"id": "comm-1"}})

    service = MessagingService(db, cache, notifier=gateway(handler))
    asyncio.run(service.send_message(a, conv.id, MessageCreateBody(content="Water shut-off at 10am", notify=True)))

    payloads = {p["recipients"][0]["user_id"]: p for p in (json.loads(r.content) for r in calls)}
    assert set(payloads) == {str(b), str(c)}
    assert payloads[str(b)]["channels"] == ["email"]
    assert payloads[str(b)]["recipients"][0]["email"] == "b@example.com"
    assert payloads[str(c)]["channels"] == ["sms"]
    assert payloads[str(c)]["type"] == "manual"
    assert payloads[str(c)]["content"] == "Water shut-off at 10am"
    assert payloads[str(c)]["conversation_id"] == str(conv.id)


def test_notification_failure_does_not_fail_send(db, make_user, start_conversation, cache, messages):
    a, b = make_user("A"), make_user("B")
    conv = start_conversation(a, [b])

    def handler(request):
        return httpx.Response(502, text="bad gateway")

    service = MessagingService(db, cache, notifier=gateway(handler))
    sent = asyncio.run(service.send_message(a, conv.id, MessageCreateBody(content="still delivered", notify=True)))

    assert thread(messages, b, conv.id)[-1].id == sent.id


def test_notify_without_gateway_is_skipped(db, make_user, start_conversation, cache):
    a, b = make_user("A"), make_user("B")
    conv = start_conversation(a, [b])
    service = MessagingService(db, cache, notifier=None)
    sent = asyncio.run(service.send_message(a, conv.id, MessageCreateBody(content="quiet", notify=True)))
    assert sent.content == "quiet"


def test_unreadable_gateway_answer_does_not_fail_send(db, make_user, start_conversation, cache, messages):
    a, b = make_user("A"), make_user("B")
    conv = start_conversation(a, [b])

    def handler(request):
        return httpx.Response(200, text="OK")

    service = MessagingService(db, cache, notifier=gateway(handler))
    sent = asyncio.run(service.send_message(a, conv.id, MessageCreateBody(content="hi", notify=True)))

    assert sent.content == "hi"
    assert [m.content for m in thread(messages, b, conv.id)] == ["Hello", "hi"]


def test_recipient_lookup_failure_does_not_fail_send(db, make_user, start_conversation, cache, messages,
                                                     monkeypatch):
    a, b = make_user("A"), make_user("B")
    conv = start_conversation(a, [b])
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    def broken(*args, **kwargs):
        raise SQLAlchemyError("preferences unavailable")

    monkeypatch.setattr(notification_preference_crud, "get_many", broken)
    service = MessagingService(db, cache, notifier=gateway(handler))
    sent = asyncio.run(service.send_message(a, conv.id, MessageCreateBody(content="saved anyway", notify=True)))

    assert calls == []
    assert thread(messages, b, conv.id)[-1].id == sent.id
