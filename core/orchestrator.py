"""
orchestrator.py

Builds the generation template model for a turn and invokes the generation
engine, either for a direct user message or for a trigger-injected prompt.
Generation never fails the turn: any engine error becomes a fixed apology.
Part of Lantern - Conversational Turn Dispatcher.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Optional

import config
from core.conversation import Conversation, Message
from core.identity import UNKNOWN_DISPLAY_NAME, Identity
from core.interfaces import GenerationEngine

_log = logging.getLogger("lantern.orchestrator")
_handler = logging.FileHandler(config.LOGS_DIR / "turns.log")
_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-8s | %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))

APOLOGY_TEXT = (
    "I'm sorry, I'm having trouble connecting to the AI service right now. "
    "Please try again in a moment."
)

GREET_ODDS = 4


class ResponseOrchestrator:
    """
    Produces the assistant reply for a turn.

    Example:
        orchestrator = ResponseOrchestrator(ChatGenerationEngine())
        reply = orchestrator.respond_to_message(conversation, identity)
    """

    def __init__(
        self,
        engine: GenerationEngine,
        default_persona: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        """
        Args:
            engine: Generation engine to call.
            default_persona: Persona for identities without one. Defaults to
                config.DEFAULT_PERSONA.
            rng: Randomness source for the greet-by-name coin flip.
        """
        self.engine = engine
        self.default_persona = default_persona or config.DEFAULT_PERSONA
        self.rng = rng or random.Random()

    def effective_persona(self, identity: Identity) -> str:
        return identity.persona or self.default_persona

    def greet_by_name(self, conversation: Conversation) -> bool:
        """Always greet on the first message, otherwise one turn in four."""
        if len(conversation) <= 1:
            return True
        return self.rng.randrange(GREET_ODDS) == 0

    def build_template_model(
        self, identity: Identity, conversation: Conversation
    ) -> dict[str, Any]:
        """
        Build the model shared by generation and classification prompts.

        Args:
            identity: The acting identity.
            conversation: The conversation being answered.

        Returns:
            {"persona": str, "user": {"displayName"?, "customPersona", "greetByName"}}
        """
        user: dict[str, Any] = {
            "customPersona": identity.custom_prompt,
            "greetByName": self.greet_by_name(conversation),
        }
        name = identity.display_label
        if name != UNKNOWN_DISPLAY_NAME:
            user["displayName"] = name
        return {"persona": self.effective_persona(identity), "user": user}

    def respond_to_message(
        self,
        conversation: Conversation,
        identity: Identity,
        template_model: Optional[dict[str, Any]] = None,
    ) -> Message:
        """
        Generate a reply to the conversation's latest user message.

        Args:
            conversation: The conversation being answered.
            identity: The acting identity.
            template_model: Model already built for this turn (and shown to
                the classifier). Built here when None.

        Returns:
            An assistant Message; the apology when generation fails.
        """
        model = template_model
        if model is None:
            model = self.build_template_model(identity, conversation)
        try:
            text = self.engine.generate(conversation, model)
        except Exception as exc:
            _log.error(
                "GENERATION FAILED | identity=%s (%s) | conversation=%s | %s: %s",
                identity.id, identity.display_label, conversation.id, type(exc).__name__, exc,
            )
            return Message.assistant(APOLOGY_TEXT)
        return Message.assistant(text)

    def respond_to_trigger(
        self,
        conversation: Conversation,
        prompt: str,
        identity: Identity,
        fallback_text: Optional[str] = None,
    ) -> Message:
        """
        Generate a reply to an injected trigger prompt.

        Args:
            conversation: Conversation the reply will be appended to.
            prompt: Trigger prompt text.
            identity: Identity the trigger acts on behalf of.
            fallback_text: Sent instead of the apology when generation fails.

        Returns:
            An assistant Message; fallback_text or the apology when
            generation fails.
        """
        model = self.build_template_model(identity, conversation)
        try:
            text = self.engine.generate_for_prompt(conversation, prompt, model)
        except Exception as exc:
            _log.error(
                "TRIGGER GENERATION FAILED | identity=%s (%s) | prompt='%s' | %s: %s",
                identity.id, identity.display_label, prompt[:120], type(exc).__name__, exc,
            )
            return Message.assistant(fallback_text or APOLOGY_TEXT)
        return Message.assistant(text)
