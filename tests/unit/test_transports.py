"""
Tests for notification transports.
"""

import json

import httpx
import pytest

from locklearn_notify.config import Settings
from locklearn_notify.exceptions import TransportError
from locklearn_notify.transports import (
    LogTransport,
    MultiTransport,
    NotificationPayload,
    WebhookTransport,
    create_transport,
)


@pytest.fixture
def payload(sample_quiz):
    return NotificationPayload.for_quiz(sample_quiz, "notif-1-abc", "u1", title="Quiz time")


def test_payload_for_quiz(payload, sample_quiz):
    assert payload.title == "Quiz time"
    assert payload.body == sample_quiz.question
    assert len(payload.quick_actions) == 2
    assert payload.to_dict()["quick_actions"][1] == {"label": "Data Link", "action_id": "answer-1"}


def test_payload_with_single_option(language_quiz):
    from dataclasses import replace

    one_option = replace(language_quiz, options=("affect",), correct_answer=0)
    payload = NotificationPayload.for_quiz(one_option, "n", "u1")
    assert [a.action_id for a in payload.quick_actions] == ["answer-0"]


@pytest.mark.asyncio
async def test_webhook_posts_payload(payload):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(202)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    transport = WebhookTransport("https://push.example.com/send", platform="mobile", client=client)

    await transport.send(payload)
    await client.aclose()

    assert len(requests) == 1
    body = json.loads(requests[0].content)
    assert body["platform"] == "mobile"
    assert body["body"] == payload.body
    assert body["data"]["notification_id"] == "notif-1-abc"


@pytest.mark.asyncio
async def test_webhook_error_status_raises(payload):
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(503)))
    transport = WebhookTransport("https://push.example.com/send", platform="web", client=client)

    with pytest.raises(TransportError, match="503"):
        await transport.send(payload)
    await client.aclose()


@pytest.mark.asyncio
async def test_webhook_connection_error_raises(payload):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    transport = WebhookTransport("https://push.example.com/send", platform="web", client=client)

    with pytest.raises(TransportError):
        await transport.send(payload)
    await client.aclose()


@pytest.mark.asyncio
async def test_multi_transport_tries_every_child(payload, transport, failing_transport):
    multi = MultiTransport([failing_transport, transport])

    with pytest.raises(TransportError, match="gateway down"):
        await multi.send(payload)

    assert transport.sent == [payload]


@pytest.mark.asyncio
async def test_log_transport_does_not_raise(payload):
    await LogTransport().send(payload)


@pytest.mark.asyncio
async def test_create_transport_desktop_only():
    settings = Settings(_env_file=None, push_gateway_url=None)
    assert isinstance(create_transport(settings), LogTransport)


@pytest.mark.asyncio
async def test_create_transport_with_gateway():
    settings = Settings(
        _env_file=None,
        push_gateway_url="https://push.example.com/send",
        platform_web=True,
        platform_mobile=True,
        platform_desktop=True,
    )
    transport = create_transport(settings)

    assert isinstance(transport, MultiTransport)
    assert [t.name for t in transport.transports] == ["webhook:web", "webhook:mobile", "log"]
    await transport.aclose()
