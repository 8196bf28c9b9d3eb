from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import yaml

import config
from background.process import TriggerDaemon
from background.schedule import ScheduledTrigger, TriggerSchedule
from background.triggers import Trigger, TriggerDispatcher
from core.conversation import ConversationRegistry, Role
from core.errors import EngineError
from core.identity import KnownIdentityDescriptor, PlatformDescriptor
from core.orchestrator import APOLOGY_TEXT

from conftest import conversation_with

# A Monday
MONDAY_8AM = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def dispatcher(handler):
    d = TriggerDispatcher(handler, workers=2)
    yield d
    d.shutdown()


def test_dispatch_on_behalf_of_identity(dispatcher, resolver, generation, channel):
    target = resolver.resolve(PlatformDescriptor("2002", username="x"))
    conv = conversation_with()
    trigger = Trigger("Remind them", (KnownIdentityDescriptor(target.id),))

    reply = dispatcher.dispatch(conv, trigger, PlatformDescriptor("9999"))

    kind, _, prompt, _ = generation.calls[0]
    assert (kind, prompt) == ("generate_for_prompt", "Remind them")
    assert channel.sent[0][0].id == target.id
    assert conv.messages[-1] == reply


def test_dispatch_uses_first_target_only(dispatcher, resolver, channel):
    first = resolver.resolve(PlatformDescriptor("1"))
    second = resolver.resolve(PlatformDescriptor("2"))
    trigger = Trigger("Ping", (KnownIdentityDescriptor(first.id), KnownIdentityDescriptor(second.id)))

    dispatcher.dispatch(conversation_with(), trigger)

    assert [identity.id for identity, _ in channel.sent] == [first.id]


def test_dispatch_falls_back_to_invoking_identity(dispatcher, channel):
    dispatcher.dispatch(conversation_with(), Trigger("Check in"), PlatformDescriptor("3003", username="fallback"))
    assert channel.sent[0][0].display_name == "fallback"


def test_dispatch_unresolved_target_aborts_silently(dispatcher, generation, channel):
    assert dispatcher.dispatch(conversation_with(), Trigger("Check in"), None) is None
    assert dispatcher.dispatch(conversation_with(), Trigger("x", (KnownIdentityDescriptor("gone"),))) is None
    assert generation.calls == []
    assert channel.sent == []


def test_dispatch_generation_failure_sends_apology(dispatcher, generation, channel, narration_cache):
    generation.error = EngineError("down")
    conv = conversation_with()

    dispatcher.dispatch(conv, Trigger("Remind them"), PlatformDescriptor("1"))

    assert channel.sent[0][1].content == APOLOGY_TEXT
    assert conv.last_message(Role.ASSISTANT).content == APOLOGY_TEXT
    assert narration_cache.get(conv.id) is not None


def test_submit_runs_on_worker(dispatcher, channel):
    future = dispatcher.submit(conversation_with(), Trigger("Hello"), PlatformDescriptor("1"))
    assert future.result(timeout=10) is not None
    assert len(channel.sent) == 1


def _write_schedule(path, entries):
    path.write_text(yaml.safe_dump({"triggers": entries}), encoding="utf-8")
    return TriggerSchedule(path)


def test_scheduled_trigger_due_rules():
    entry = ScheduledTrigger(id="t", hour=8, minute=0, prompt="p", days=["mon"])

    assert entry.is_due(MONDAY_8AM)
    assert not entry.is_due(MONDAY_8AM + timedelta(minutes=1))
    assert not entry.is_due(MONDAY_8AM + timedelta(days=1))

    entry.last_fired = MONDAY_8AM - timedelta(hours=2)
    assert not entry.is_due(MONDAY_8AM)
    entry.last_fired = MONDAY_8AM - timedelta(days=7)
    assert entry.is_due(MONDAY_8AM)

    entry.enabled = False
    assert not entry.is_due(MONDAY_8AM)


def test_schedule_loads_and_marks_fired(tmp_path):
    path = tmp_path / "triggers.yaml"
    schedule = _write_schedule(path, [
        {"id": "morning", "hour": 8, "minute": 0, "days": ["Monday"], "prompt": "Good morning",
         "on_behalf_of": ["id-1"]},
        {"id": "evening", "hour": 18, "minute": 0, "prompt": "Good evening"},
    ])

    due = schedule.due(MONDAY_8AM)
    assert [e.id for e in due] == ["morning"]
    trigger = due[0].to_trigger()
    assert trigger.on_behalf_of == (KnownIdentityDescriptor("id-1"),)

    schedule.mark_fired("morning", MONDAY_8AM)
    assert TriggerSchedule(path).entries[0].last_fired == MONDAY_8AM
    assert TriggerSchedule(path).due(MONDAY_8AM) == []


def test_schedule_missing_or_broken_file(tmp_path):
    assert TriggerSchedule(tmp_path / "absent.yaml").entries == []
    broken = tmp_path / "broken.yaml"
    broken.write_text("triggers: [ {id: ", encoding="utf-8")
    assert TriggerSchedule(broken).entries == []


def test_naive_last_fired_is_read_as_utc(tmp_path):
    path = tmp_path / "triggers.yaml"
    # Hand-edited file with an unquoted, naive timestamp
    path.write_text(
        "triggers:\n"
        "  - id: a\n"
        "    hour: 8\n"
        "    minute: 0\n"
        "    prompt: first\n"
        "    last_fired: 2026-10-12 08:00:00\n"
        "  - id: b\n"
        "    hour: 8\n"
        "    minute: 0\n"
        "    prompt: second\n"
        "  - id: c\n"
        "    hour: 8\n"
        "    minute: 0\n"
        "    prompt: third\n"
        "    last_fired: '2026-10-19T07:00:00'\n",
        encoding="utf-8",
    )
    schedule = TriggerSchedule(path)

    assert schedule.entries[0].last_fired == datetime(2026, 10, 12, 8, 0, tzinfo=timezone.utc)
    assert [e.id for e in schedule.due(MONDAY_8AM)] == ["a", "b"]


def test_missing_schedule_reads_defaults_and_saves_to_own_path(tmp_path):
    defaults = tmp_path / "bundled.yaml"
    defaults.write_text(
        yaml.safe_dump({"triggers": [{"id": "morning", "hour": 8, "minute": 0, "prompt": "Good morning"}]}),
        encoding="utf-8",
    )
    target = tmp_path / "state" / "triggers.yaml"
    schedule = TriggerSchedule(target, defaults_path=defaults)

    assert [e.id for e in schedule.entries] == ["morning"]
    schedule.mark_fired("morning", MONDAY_8AM)

    assert target.exists()
    assert "last_fired" not in defaults.read_text(encoding="utf-8")
    assert TriggerSchedule(target, defaults_path=defaults).entries[0].last_fired == MONDAY_8AM


def test_default_schedule_writes_under_data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "TRIGGERS_FILE", tmp_path / "triggers.yaml")
    schedule = TriggerSchedule()

    assert schedule.path == tmp_path / "triggers.yaml"
    assert schedule.defaults_path == config.BUNDLED_TRIGGERS_FILE
    assert schedule.entries


def test_shipped_schedule_parses():
    entries = TriggerSchedule().entries
    assert entries
    assert all(e.prompt for e in entries)


def test_daemon_cycle_dispatches_due_triggers(tmp_path, dispatcher, channel):
    schedule = _write_schedule(tmp_path / "triggers.yaml", [
        {"id": "morning", "hour": 8, "minute": 0, "prompt": "Good morning"},
    ])
    registry = ConversationRegistry()
    daemon = TriggerDaemon(
        dispatcher, schedule, registry,
        fallback_descriptor=PlatformDescriptor("4004", username="owner"),
        default_conversation_key="owner",
    )

    assert daemon.run_cycle(MONDAY_8AM) == 1
    assert channel.sent[0][0].display_name == "owner"
    assert len(registry.get_or_open("owner")) == 1
    assert daemon.run_cycle(MONDAY_8AM) == 0
    assert daemon.get_status()["last_trigger"] == "morning"
