from __future__ import annotations

import random

from core.conversation import Role
from core.errors import EngineError
from core.identity import Identity, PlatformLinked
from core.orchestrator import APOLOGY_TEXT, ResponseOrchestrator

from conftest import SpyGenerationEngine, conversation_with


class ForcedRandom(random.Random):
    def __init__(self, value: int):
        super().__init__()
        self.value = value

    def randrange(self, *args, **kwargs):
        return self.value


def _identity(**kwargs) -> Identity:
    fields = {"id": "id-1", "display_name": "Ada", "origin": PlatformLinked("1001")}
    fields.update(kwargs)
    return Identity(**fields)


def test_template_model_fields():
    orchestrator = ResponseOrchestrator(SpyGenerationEngine(), default_persona="adaptive")
    model = orchestrator.build_template_model(
        _identity(persona="pirate", custom_prompt="Speak in haiku"), conversation_with("Hi")
    )

    assert model == {
        "persona": "pirate",
        "user": {"displayName": "Ada", "customPersona": "Speak in haiku", "greetByName": True},
    }


def test_template_model_defaults_persona_and_omits_unknown_name():
    orchestrator = ResponseOrchestrator(SpyGenerationEngine(), default_persona="adaptive")
    model = orchestrator.build_template_model(_identity(display_name=""), conversation_with("Hi"))

    assert model["persona"] == "adaptive"
    assert "displayName" not in model["user"]
    assert model["user"]["customPersona"] is None


def test_greet_by_name_always_on_first_message():
    orchestrator = ResponseOrchestrator(SpyGenerationEngine(), rng=ForcedRandom(3))
    for conv in (conversation_with(), conversation_with("Hi")):
        assert orchestrator.build_template_model(_identity(), conv)["user"]["greetByName"] is True


def test_greet_by_name_forced_branches_later():
    conv = conversation_with("Hi", "Hello", "more")
    yes = ResponseOrchestrator(SpyGenerationEngine(), rng=ForcedRandom(0))
    no = ResponseOrchestrator(SpyGenerationEngine(), rng=ForcedRandom(2))

    assert yes.build_template_model(_identity(), conv)["user"]["greetByName"] is True
    assert no.build_template_model(_identity(), conv)["user"]["greetByName"] is False


def test_greet_by_name_about_one_in_four():
    orchestrator = ResponseOrchestrator(SpyGenerationEngine(), rng=random.Random(1234))
    conv = conversation_with("Hi", "Hello", "more")

    samples = 4000
    greeted = sum(orchestrator.greet_by_name(conv) for _ in range(samples))

    assert 0.22 < greeted / samples < 0.28


def test_respond_to_message_returns_generated_reply():
    engine = SpyGenerationEngine(reply="Hello Ada")
    conv = conversation_with("Hi")

    reply = ResponseOrchestrator(engine).respond_to_message(conv, _identity())

    assert reply.role == Role.ASSISTANT
    assert reply.content == "Hello Ada"
    assert engine.calls[0][0] == "generate"
    assert engine.calls[0][1] is conv


def test_respond_to_message_apologises_on_failure():
    engine = SpyGenerationEngine(error=EngineError("provider down"))
    reply = ResponseOrchestrator(engine).respond_to_message(conversation_with("Hi"), _identity())
    assert reply.content == APOLOGY_TEXT


def test_respond_to_message_apologises_on_timeout():
    engine = SpyGenerationEngine(error=TimeoutError("took too long"))
    reply = ResponseOrchestrator(engine).respond_to_message(conversation_with("Hi"), _identity())
    assert reply.content == APOLOGY_TEXT


def test_respond_to_trigger_injects_prompt():
    engine = SpyGenerationEngine(reply="Don't forget the demo!")
    reply = ResponseOrchestrator(engine).respond_to_trigger(
        conversation_with(), "Remind them", _identity()
    )

    kind, _, prompt, model = engine.calls[0]
    assert kind == "generate_for_prompt"
    assert prompt == "Remind them"
    assert model["user"]["displayName"] == "Ada"
    assert reply.content == "Don't forget the demo!"


def test_respond_to_trigger_apologises_on_failure():
    engine = SpyGenerationEngine(error=RuntimeError("no engines"))
    reply = ResponseOrchestrator(engine).respond_to_trigger(conversation_with(), "Remind them", _identity())
    assert reply.content == APOLOGY_TEXT


def test_respond_to_message_uses_the_model_it_is_given():
    engine = SpyGenerationEngine()
    orchestrator = ResponseOrchestrator(engine, rng=ForcedRandom(1))
    conv = conversation_with("Hi", "Hello!", "More?")
    model = orchestrator.build_template_model(_identity(), conv)
    model["user"]["greetByName"] = True

    orchestrator.respond_to_message(conv, _identity(), model)

    assert engine.calls[0][3] is model


def test_respond_to_trigger_uses_fallback_text_on_failure():
    engine = SpyGenerationEngine(error=EngineError("down"))
    reply = ResponseOrchestrator(engine).respond_to_trigger(
        conversation_with(), "Welcome them", _identity(), fallback_text="Welcome!"
    )
    assert reply.content == "Welcome!"
