from __future__ import annotations

import pytest

import config
import main
from core.conversation import Message
from core.identity import Identity, PlatformLinked, WebUserDescriptor

from conftest import SpyChannel, SpyClassificationEngine, SpyGenerationEngine, SpyNarrationEngine


@pytest.fixture
def runtime(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "NARRATION_ENABLED", True)
    monkeypatch.setattr(config, "WELCOME_ENABLED", False)
    rt = main.build_runtime(f"sqlite:///{tmp_path / 'runtime.db'}", channel=SpyChannel(), narration_mode="inline")
    # Swap the LLM-backed engines for spies
    rt.handler.orchestrator.engine = SpyGenerationEngine("Hello from Lantern")
    rt.handler.classifier.engine = SpyClassificationEngine()
    rt.handler.narrator.engine = SpyNarrationEngine("Spoken hello")
    yield rt
    rt.shutdown()


def test_build_runtime_end_to_end(runtime):
    descriptor = WebUserDescriptor("cli:owner", display_name="owner")
    conv = runtime.conversations.get_or_open("cli:owner")
    conv.add_message(Message.user("Hi"))

    reply = runtime.handler.handle_message(conv, descriptor, "Hi")

    assert reply.content == "Hello from Lantern"
    assert runtime.narration_cache.get(conv.id) == "Spoken hello"
    assert runtime.store.find_all()[0].display_name == "owner"


def test_console_channel_prints_cli_identities(capsys, runtime):
    fallback = SpyChannel()
    console = main.ConsoleChannel(fallback)
    cli_user = runtime.resolver.resolve(WebUserDescriptor("cli:owner", display_name="owner"))

    assert console.send(cli_user, Message.assistant("hi there"))
    assert console.send_status(cli_user, "Narrating...")
    out = capsys.readouterr().out
    assert "Lantern: hi there" in out
    assert "(Narrating...)" in out
    assert fallback.sent == []


def test_console_channel_forwards_other_identities(runtime):
    fallback = SpyChannel()
    console = main.ConsoleChannel(fallback)
    telegram_user = Identity(id="t", display_name="Ada", origin=PlatformLinked("1"))

    console.send(telegram_user, Message.assistant("hi"))
    assert fallback.sent[0][0] is telegram_user
    assert console.status_target(telegram_user) == "t"


def test_config_as_dict_masks_secrets(monkeypatch):
    monkeypatch.setattr(config, "ANTHROPIC_API_KEY", "sk-secret")
    monkeypatch.setattr(config, "TELEGRAM_BOT_TOKEN", "123:abc")
    values = config.as_dict()
    assert values["ANTHROPIC_API_KEY"] == "***set***"
    assert values["TELEGRAM_BOT_TOKEN"] == "***set***"
    assert "sk-secret" not in str(values)


def test_config_validation_exits(monkeypatch):
    monkeypatch.setattr(config, "NARRATION_MODE", "sometimes")
    with pytest.raises(SystemExit):
        config.validate_narration_mode()

    monkeypatch.setattr(config, "ANTHROPIC_API_KEY", "")
    with pytest.raises(SystemExit):
        config.validate_required_for_engine("anthropic")
    config.validate_required_for_engine("local")


def test_runtime_welcomes_new_identities(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "WELCOME_ENABLED", True)
    monkeypatch.setattr(config, "NARRATION_ENABLED", False)
    channel = SpyChannel()
    rt = main.build_runtime(f"sqlite:///{tmp_path / 'welcome.db'}", channel=channel, narration_mode="inline")
    rt.handler.orchestrator.engine = SpyGenerationEngine("Welcome aboard, owner!")
    try:
        rt.resolver.resolve(WebUserDescriptor("cli:owner", display_name="owner"))
        rt.resolver.resolve(WebUserDescriptor("cli:owner", display_name="owner"))
    finally:
        rt.shutdown()

    assert rt.greeter is not None
    assert [m.content for _, m in channel.sent] == ["Welcome aboard, owner!"]
    assert rt.conversations.get_or_open("cli:owner").messages[-1].content == "Welcome aboard, owner!"
