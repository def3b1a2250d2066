import uuid

import pytest
from fastapi.testclient import TestClient

from main import app
from property_inbox.cache import get_query_cache
from property_inbox.core.database import get_db
from property_inbox.core.dependencies import get_viewer_id


class Viewer:
    id = None


@pytest.fixture
def viewer():
    return Viewer()


@pytest.fixture
def client(db, cache, viewer):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_query_cache] = lambda: cache
    app.dependency_overrides[get_viewer_id] = lambda: viewer.id
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(db, cache):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_query_cache] = lambda: cache
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_conversation_round_trip(client, viewer, make_user):
    alice, bob = make_user("Alice", "Owner"), make_user("Bob", "Tenant")

    viewer.id = alice
    r = client.post(
        "/api/v1/inbox/conversations",
        json={"title": "Lease Renewal", "participant_ids": [str(bob)], "initial_message": "Please review."},
    )
    assert r.status_code == 201
    conv = r.json()
    assert conv["thread_count"] == 1
    assert conv["unread_count"] == 0

    viewer.id = bob
    inbox = client.get("/api/v1/inbox/conversations").json()
    assert [c["id"] for c in inbox["items"]] == [conv["id"]]
    assert inbox["items"][0]["unread_count"] == 1
    assert inbox["items"][0]["last_message"]["sender_name"] == "Alice Owner"

    r = client.post(f"/api/v1/inbox/conversations/{conv['id']}/messages", json={"content": "Looks good "})
    assert r.status_code == 201
    assert r.json()["content"] == "Looks good "

    thread = client.get(f"/api/v1/inbox/conversations/{conv['id']}/messages").json()["items"]
    assert [m["content"] for m in thread] == ["Please review.", "Looks good "]

    r = client.post(f"/api/v1/inbox/conversations/{conv['id']}/read")
    assert r.json() == {"conversation_id": conv["id"], "marked": 1}
    assert client.get(f"/api/v1/inbox/conversations/{conv['id']}").json()["unread_count"] == 0

    people = client.get(f"/api/v1/inbox/conversations/{conv['id']}/participants").json()
    assert {p["display_name"] for p in people} == {"Alice Owner", "Bob Tenant"}


def test_pages_and_soft_delete(client, viewer, make_user):
    a, b = make_user("A"), make_user("B")
    viewer.id = a
    conv = client.post(
        "/api/v1/inbox/conversations", json={"participant_ids": [str(b)], "initial_message": "first"}
    ).json()
    sent = client.post(f"/api/v1/inbox/conversations/{conv['id']}/messages", json={"content": "second"}).json()

    page = client.get(f"/api/v1/inbox/conversations/{conv['id']}/pages/0").json()
    assert [m["content"] for m in page["items"]] == ["second", "first"]
    assert page["page"] == 0
    assert page["has_more"] is False

    r = client.delete(f"/api/v1/inbox/messages/{sent['id']}")
    assert r.status_code == 200
    assert r.json()["deleted_at"] is not None

    page = client.get(f"/api/v1/inbox/conversations/{conv['id']}/pages/0").json()
    assert [m["content"] for m in page["items"]] == ["first"]
    kept = client.get(f"/api/v1/inbox/messages/{sent['id']}").json()
    assert kept["content"] == "second"
    assert kept["deleted_at"] is not None


def test_labels_mute_and_search(client, viewer, make_user):
    a, b = make_user("A"), make_user("B")
    viewer.id = a
    conv = client.post(
        "/api/v1/inbox/conversations",
        json={"participant_ids": [str(b)], "initial_message": "Gutter cleaning on Friday", "type": "maintenance"},
    ).json()
    cid = conv["id"]

    assert client.post(f"/api/v1/inbox/conversations/{cid}/labels", json={"label": "seasonal"}).json()["labels"] == [
        "seasonal"
    ]
    assert client.post(f"/api/v1/inbox/conversations/{cid}/mute").json()["is_muted"] is True
    assert client.delete(f"/api/v1/inbox/conversations/{cid}/labels/seasonal").json()["labels"] == ["muted"]
    assert client.put(f"/api/v1/inbox/conversations/{cid}/star", json={"value": True}).json()["is_starred"] is True

    found = client.get("/api/v1/inbox/messages/search", params={"q": "GUTTER"}).json()["items"]
    assert [m["conversation_id"] for m in found] == [cid]

    viewer.id = b
    assert [c["id"] for c in client.get("/api/v1/inbox/conversations?filter=maintenance").json()["items"]] == [cid]


def test_invalid_filter_and_unknown_conversation(client, viewer, make_user):
    viewer.id = make_user("A")
    r = client.get("/api/v1/inbox/conversations", params={"filter": "spam"})
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "INVALID_FILTER"

    r = client.get(f"/api/v1/inbox/conversations/{uuid.uuid4()}")
    assert r.status_code == 404
    assert r.json()["detail"]["code"] == "NOT_FOUND"


def test_empty_message_is_rejected(client, viewer, make_user):
    a, b = make_user("A"), make_user("B")
    viewer.id = a
    conv = client.post(
        "/api/v1/inbox/conversations", json={"participant_ids": [str(b)], "initial_message": "hi"}
    ).json()
    r = client.post(f"/api/v1/inbox/conversations/{conv['id']}/messages", json={"content": ""})
    assert r.status_code == 422


def test_preferences_endpoints(client, viewer, make_user):
    viewer.id = make_user("A")
    assert client.get("/api/v1/inbox/preferences").json() == {
        "email_enabled": True,
        "sms_enabled": False,
        "push_enabled": False,
    }
    r = client.put("/api/v1/inbox/preferences", json={"sms_enabled": True})
    assert r.json()["sms_enabled"] is True
    assert client.get("/api/v1/inbox/preferences").json()["sms_enabled"] is True


def test_missing_token_is_unauthenticated(anonymous_client):
    r = anonymous_client.get("/api/v1/inbox/conversations")
    assert r.status_code == 401
    assert r.json()["detail"]["code"] == "NOT_AUTHENTICATED"


def test_unknown_token_is_expired_session(anonymous_client, monkeypatch):
    monkeypatch.setattr("property_inbox.core.middleware.get_session", lambda token: None)
    r = anonymous_client.get("/api/v1/inbox/conversations", headers={"Authorization": "Bearer stale"})
    assert r.status_code == 401
    assert r.json()["detail"]["code"] == "SESSION_EXPIRED"


def test_session_token_resolves_viewer(anonymous_client, make_user, monkeypatch):
    viewer_id = make_user("A")
    monkeypatch.setattr(
        "property_inbox.core.middleware.get_session",
        lambda token: {"user_id": str(viewer_id), "email": "a@example.com"} if token == "good" else None,
    )
    r = anonymous_client.get("/api/v1/inbox/conversations", headers={"Authorization": "Bearer good"})
    assert r.status_code == 200
    assert r.json()["items"] == []


def test_redis_unavailable_means_no_session(anonymous_client):
    # Redis is never initialised in tests, so the lookup fails and the request is unauthenticated.
    r = anonymous_client.get("/api/v1/inbox/conversations", headers={"Authorization": "Bearer any"})
    assert r.status_code == 401
    assert r.json()["detail"]["code"] == "SESSION_EXPIRED"


def test_whitespace_label_is_rejected(client, viewer, make_user):
    a, b = make_user("A"), make_user("B")
    viewer.id = a
    conv = client.post(
        "/api/v1/inbox/conversations", json={"participant_ids": [str(b)], "initial_message": "hi"}
    ).json()
    r = client.post(f"/api/v1/inbox/conversations/{conv['id']}/labels", json={"label": "   "})
    assert r.status_code == 422
    assert client.get(f"/api/v1/inbox/conversations/{conv['id']}").json()["labels"] == []


def test_reactions_mentions_and_templates_over_http(client, viewer, make_user):
    a, b = make_user("Alice"), make_user("Bob")
    viewer.id = a
    conv = client.post(
        "/api/v1/inbox/conversations", json={"participant_ids": [str(b)], "initial_message": "hi"}
    ).json()
    sent = client.post(
        f"/api/v1/inbox/conversations/{conv['id']}/messages",
        json={"content": "@Bob can you confirm?", "mention_ids": [str(b)]},
    ).json()

    viewer.id = b
    r = client.post(f"/api/v1/inbox/messages/{sent['id']}/reactions", json={"reaction_type": "thumbs_up"})
    assert r.status_code == 201
    assert r.json()["reaction_type"] == "thumbs_up"
    bad = client.post(f"/api/v1/inbox/messages/{sent['id']}/reactions", json={"reaction_type": "shrug"})
    assert bad.status_code == 422
    assert len(client.get(f"/api/v1/inbox/messages/{sent['id']}/reactions").json()) == 1
    assert client.delete(f"/api/v1/inbox/messages/{sent['id']}/reactions/thumbs_up").json() == []

    mentions = client.get("/api/v1/inbox/mentions", params={"unread_only": True}).json()
    assert [m["message"]["id"] for m in mentions] == [sent["id"]]
    read = client.post(f"/api/v1/inbox/mentions/{mentions[0]['id']}/read")
    assert read.status_code == 200
    assert read.json()["read_at"] is not None
    assert client.get("/api/v1/inbox/mentions", params={"unread_only": True}).json() == []

    r = client.post("/api/v1/inbox/templates", json={"name": "Confirm", "content": "Confirmed, thanks."})
    assert r.status_code == 201
    assert [t["name"] for t in client.get("/api/v1/inbox/templates").json()] == ["Confirm"]
    viewer.id = a
    assert client.get("/api/v1/inbox/templates").json() == []


def test_reactions_on_unknown_message_are_not_found(client, viewer, make_user):
    viewer.id = make_user("A")
    r = client.get(f"/api/v1/inbox/messages/{uuid.uuid4()}/reactions")
    assert r.status_code == 404
    r = client.post(f"/api/v1/inbox/mentions/{uuid.uuid4()}/read")
    assert r.status_code == 404
