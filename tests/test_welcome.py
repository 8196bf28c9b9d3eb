from __future__ import annotations

import pytest

from background.triggers import TriggerDispatcher
from background.welcome import DEFAULT_WELCOME_TEXT, WelcomeGreeter
from core.conversation import ConversationRegistry, Role
from core.errors import EngineError
from core.identity import AnonymousWebDescriptor, PlatformDescriptor, WebUserDescriptor


@pytest.fixture
def registry():
    return ConversationRegistry()


@pytest.fixture
def greeter(handler, resolver, registry):
    dispatcher = TriggerDispatcher(handler, workers=2)
    g = WelcomeGreeter(dispatcher, registry)
    resolver.add_created_listener(g.greet_new_user)
    yield g
    dispatcher.shutdown()


def _wait(greeter):
    # Drain the dispatcher so the welcome turn has finished
    greeter.dispatcher.shutdown(wait=True)


def test_new_web_user_gets_generated_welcome(greeter, resolver, registry, generation, channel):
    generation.reply = "Hi Lin, welcome to Lantern!"
    lin = resolver.resolve(WebUserDescriptor("web-7", display_name="Lin"))
    _wait(greeter)

    kind, _, prompt, model = generation.calls[0]
    assert kind == "generate_for_prompt"
    assert "Lin" in prompt
    assert model["user"]["displayName"] == "Lin"
    assert [(i.id, m.content) for i, m in channel.sent] == [(lin.id, "Hi Lin, welcome to Lantern!")]
    assert registry.get_or_open("web-7").last_message(Role.ASSISTANT).content == "Hi Lin, welcome to Lantern!"


def test_generation_failure_sends_static_welcome(greeter, resolver, registry, generation, channel):
    generation.error = EngineError("model offline")
    resolver.resolve(PlatformDescriptor("1001", username="ada"))
    _wait(greeter)

    assert [m.content for _, m in channel.sent] == [DEFAULT_WELCOME_TEXT]


def test_existing_identity_is_not_welcomed_again(greeter, resolver, generation, channel):
    resolver.resolve(PlatformDescriptor("1001", username="ada"))
    resolver.resolve(PlatformDescriptor("1001", username="ada"))
    _wait(greeter)

    assert len(generation.calls) == 1
    assert len(channel.sent) == 1


def test_anonymous_and_bots_are_not_welcomed(greeter, resolver, generation, channel):
    resolver.resolve(AnonymousWebDescriptor())
    resolver.resolve(PlatformDescriptor("2002", username="helper-bot", is_bot=True))
    _wait(greeter)

    assert generation.calls == []
    assert channel.sent == []


def test_custom_welcome_text(handler, resolver, generation, channel):
    dispatcher = TriggerDispatcher(handler, workers=1)
    greeter = WelcomeGreeter(dispatcher, ConversationRegistry(), welcome_text="Hello and welcome!")
    generation.error = EngineError("down")

    future = greeter.greet_new_user(resolver.resolve(PlatformDescriptor("3003")))
    future.result(timeout=10)
    dispatcher.shutdown()

    assert channel.sent[0][1].content == "Hello and welcome!"
