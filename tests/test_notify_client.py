import asyncio
import json

import httpx
import pytest

from property_inbox.notify import CommunicationClient, CommunicationClientError


def client_with(handler, **kwargs):
    return CommunicationClient(
        base_url=kwargs.pop("base_url", "https://comms.test/api/"),
        api_key=kwargs.pop("api_key", "secret-key"),
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def send(client, **overrides):
    payload = {
        "recipients": [{"user_id": "u1", "email": "u1@example.com"}],
        "content": "Pool closed Monday",
        "channels": ["email"],
        "subject": "Notice",
        "conversation_id": "c1",
    }
    payload.update(overrides)
    return asyncio.run(client.send_communication(**payload))


def test_posts_manual_communication():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": {"id": "comm-9", "status": "queued"}})

    result = send(client_with(handler))

    assert seen["url"] == "https://comms.test/api/send"
    assert seen["auth"] == "Bearer secret-key"
    assert seen["body"] == {
        "recipients": [{"user_id": "u1", "email": "u1@example.com"}],
        "subject": "Notice",
        "content": "Pool closed Monday",
        "channels": ["email"],
        "type": "manual",
        "conversation_id": "c1",
    }
    assert result == {"id": "comm-9", "status": "queued"}


def test_error_status_raises_with_code():
    def handler(request):
        return httpx.Response(422, text="bad recipients")

    with pytest.raises(CommunicationClientError) as exc:
        send(client_with(handler))
    assert exc.value.status_code == 422
    assert exc.value.body == "bad recipients"


def test_transport_error_is_wrapped():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(CommunicationClientError):
        send(client_with(handler))


def test_unconfigured_client_refuses_to_send():
    client = CommunicationClient(base_url="", api_key="")
    assert not client.configured
    with pytest.raises(CommunicationClientError):
        send(client)


def test_non_json_success_body_raises_client_error():
    def handler(request):
        return httpx.Response(200, text="OK")

    with pytest.raises(CommunicationClientError) as exc:
        send(client_with(handler))
    assert exc.value.status_code == 200
    assert exc.value.body == "OK"


def test_empty_success_body_is_an_empty_result():
    def handler(request):
        return httpx.Response(204)

    assert send(client_with(handler)) == {}
