import asyncio
import json

import httpx
import pytest

from app.core.exceptions import TransportError
from app.services import telegram_service
from app.services.telegram_service import MediaItem, TelegramTransport
from utils.telegram_utils import channel_buttons


def make_transport(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TelegramTransport("123:abc", base_url="https://tg.test", client=client)


def run(coro):
    return asyncio.run(coro)


def test_send_text_posts_html_message_with_buttons():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ok": True, "result": {"message_id": 77}})

    transport = make_transport(handler)
    message_id = run(transport.send_text(-100, "<b>hi</b>", buttons=channel_buttons("p1")))

    assert message_id == 77
    assert seen["url"] == "https://tg.test/bot123:abc/sendMessage"
    assert seen["body"]["chat_id"] == -100
    assert seen["body"]["parse_mode"] == "HTML"
    assert seen["body"]["reply_markup"]["inline_keyboard"][0][0]["callback_data"] == "buy:p1"


def test_api_error_raises_transport_error():
    def handler(request):
        return httpx.Response(403, json={
            "ok": False, "error_code": 403, "description": "Forbidden: bot was blocked by the user"
        })

    transport = make_transport(handler)
    with pytest.raises(TransportError) as exc:
        run(transport.send_text(5, "hello"))

    assert "blocked" in exc.value.message
    assert exc.value.details["error_code"] == 403


def test_network_error_raises_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    transport = make_transport(handler)
    with pytest.raises(TransportError):
        run(transport.get_member_status("@market", 5))


def test_media_group_returns_every_message_id():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ok": True, "result": [
            {"message_id": 10}, {"message_id": 11}, {"message_id": 12},
        ]})

    transport = make_transport(handler)
    ids = run(transport.send_media_group("@market", [
        MediaItem("P1", caption="<b>Lamp</b>"), MediaItem("P2"), MediaItem("P3"),
    ]))

    assert ids == [10, 11, 12]
    media = seen["body"]["media"]
    assert media[0]["caption"] == "<b>Lamp</b>"
    assert "caption" not in media[1]


def test_rate_limit_is_retried_once(monkeypatch):
    calls = []
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr(telegram_service.asyncio, "sleep", fake_sleep)

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(429, json={
                "ok": False, "error_code": 429, "description": "Too Many Requests",
                "parameters": {"retry_after": 3},
            })
        return httpx.Response(200, json={"ok": True, "result": {"message_id": 1}})

    transport = make_transport(handler)
    assert run(transport.send_text(5, "hello")) == 1
    assert len(calls) == 2
    assert sleeps == [3.0]


def test_member_status():
    def handler(request):
        body = json.loads(request.content)
        assert body == {"chat_id": "@market", "user_id": 5}
        return httpx.Response(200, json={"ok": True, "result": {"status": "administrator"}})

    transport = make_transport(handler)
    assert run(transport.get_member_status("@market", 5)) == "administrator"
