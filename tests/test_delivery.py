from __future__ import annotations

import pytest
import requests

import config
from core.conversation import Message
from core.identity import Identity, PlatformLinked, WebAnonymous, WebRegistered
from delivery.messenger import TelegramChannel
from delivery.router import ChannelRouter
from delivery.web_push import WebPushChannel

from conftest import SpyChannel

TELEGRAM_USER = Identity(id="id-t", display_name="Ada", origin=PlatformLinked("555"))
WEB_USER = Identity(id="id-w", display_name="Lin", origin=WebRegistered("web-7", username="lin"))
ANON_USER = Identity(id="id-a", display_name="Friend", origin=WebAnonymous("anon-1"))


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self.payload = payload if payload is not None else {"ok": True}
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


@pytest.fixture
def posts(monkeypatch):
    calls = []

    def fake_post(url, json=None, timeout=None):
        calls.append((url, json))
        return FakeResponse()

    monkeypatch.setattr(requests, "post", fake_post)
    return calls


def test_telegram_send_message(posts):
    channel = TelegramChannel(token="T0KEN")

    assert channel.send(TELEGRAM_USER, Message.assistant("Hello"))
    url, payload = posts[0]
    assert url.endswith("/botT0KEN/sendMessage")
    assert payload["chat_id"] == "555"
    assert payload["text"] == "Hello"


def test_telegram_status_is_typing_and_clear_is_noop(posts):
    channel = TelegramChannel(token="T0KEN")

    assert channel.send_status(TELEGRAM_USER, "Narrating...")
    assert channel.send_status(TELEGRAM_USER, None)
    assert len(posts) == 1
    assert posts[0][1] == {"chat_id": "555", "action": "typing"}


def test_telegram_rejects_web_identity_and_missing_token(posts, monkeypatch):
    monkeypatch.setattr(config, "TELEGRAM_BOT_TOKEN", "")
    assert TelegramChannel(token="T0KEN").status_target(WEB_USER) is None
    assert not TelegramChannel(token="T0KEN").send(WEB_USER, Message.assistant("x"))
    assert not TelegramChannel(token="").send(TELEGRAM_USER, Message.assistant("x"))
    assert posts == []


def test_telegram_api_error_returns_false(monkeypatch):
    monkeypatch.setattr(
        requests, "post",
        lambda *a, **k: FakeResponse({"ok": False, "description": "chat not found"}),
    )
    assert not TelegramChannel(token="T0KEN").send(TELEGRAM_USER, Message.assistant("x"))


def test_telegram_network_error_returns_false(monkeypatch):
    def boom(*args, **kwargs):
        raise requests.exceptions.ConnectionError("offline")

    monkeypatch.setattr(requests, "post", boom)
    assert not TelegramChannel(token="T0KEN").send(TELEGRAM_USER, Message.assistant("x"))


def test_web_push_message_and_status(posts):
    channel = WebPushChannel(url="http://web/push", from_id="bot:test")

    assert channel.send(WEB_USER, Message.assistant("Hi Lin"))
    assert channel.send_status(ANON_USER, None)

    (url, message), (_, status) = posts
    assert url == "http://web/push"
    assert message["type"] == "message"
    assert message["to"] == "web-7"
    assert message["from"] == "bot:test"
    assert message["content"] == "Hi Lin"
    assert status["type"] == "status"
    assert status["to"] == "anon-1"
    assert status["text"] is None


def test_web_push_without_url_or_target(posts, monkeypatch):
    monkeypatch.setattr(config, "WEB_PUSH_URL", "")
    assert not WebPushChannel(url="").send(WEB_USER, Message.assistant("x"))
    assert WebPushChannel(url="http://web/push").status_target(TELEGRAM_USER) is None
    assert not WebPushChannel(url="http://web/push").send(TELEGRAM_USER, Message.assistant("x"))
    assert posts == []


def test_web_push_http_error(monkeypatch):
    monkeypatch.setattr(requests, "post", lambda *a, **k: FakeResponse(status_code=502))
    assert not WebPushChannel(url="http://web/push").send(WEB_USER, Message.assistant("x"))


def test_router_picks_channel_by_origin():
    platform, web = SpyChannel(), SpyChannel()
    channel = ChannelRouter(platform=platform, web=web)

    channel.send(TELEGRAM_USER, Message.assistant("a"))
    channel.send(WEB_USER, Message.assistant("b"))
    channel.send_status(ANON_USER, "Narrating...")

    assert [i.id for i, _ in platform.sent] == ["id-t"]
    assert [i.id for i, _ in web.sent] == ["id-w"]
    assert web.statuses == [("id-a", "Narrating...")]
    assert channel.status_target(TELEGRAM_USER) == "id-t"
