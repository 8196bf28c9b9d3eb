"""
generation.py

Chat generation engine: renders the persona system prompt from the turn's
template model and asks a raw LLM engine for the assistant reply, either for
the latest user message or for an injected trigger prompt.
Part of Lantern - Conversational Turn Dispatcher.
"""

import logging
from typing import Any, Optional

import config
from core.conversation import Conversation
from core.personas import PersonaCatalog
from engines.base import BaseEngine
from engines import router

_log = logging.getLogger("lantern.engines.generation")
_handler = logging.FileHandler(config.LOGS_DIR / "engines.log")
_handler.setFormatter(logging.Formatter("%(asctime)s  %(levelname)-8s  %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))

_SYSTEM_PROMPT = """You are Lantern, a knowledgeable and friendly assistant chatting with a user.

BEHAVIOR GUIDELINES:
- Answer the user's latest message using the conversation so far
- Be concise but thorough; skip filler
- When uncertain, ask a clarifying question rather than guessing
- Never claim capabilities you don't have"""

_TRIGGER_PREAMBLE = (
    "[System-initiated turn. The user did not type this; act on it and "
    "address the user directly.]\n"
)


def render_system_prompt(template_model: dict[str, Any], personas: PersonaCatalog) -> str:
    """
    Build the system prompt for a turn.

    Args:
        template_model: {"persona", "user": {"displayName"?, "customPersona", "greetByName"}}.
        personas: Catalog used to look up the persona's voice.

    Returns:
        The system prompt string.

    Example:
        prompt = render_system_prompt({"persona": "jesse", "user": {}}, PersonaCatalog())
    """
    parts = [_SYSTEM_PROMPT]

    persona = template_model.get("persona")
    voice = personas.voice(persona)
    if voice:
        parts.append(f"YOUR VOICE ({persona}):\n{voice}")

    user = template_model.get("user") or {}
    name = user.get("displayName")
    if name:
        parts.append(f"The user's name is {name}.")
        if user.get("greetByName"):
            parts.append("Greet the user by name at the start of your reply.")
        else:
            parts.append("Do not open your reply with the user's name.")

    custom = user.get("customPersona")
    if custom:
        parts.append(f"ADDITIONAL INSTRUCTIONS FROM THE USER:\n{custom}")

    return "\n\n".join(parts)


class ChatGenerationEngine:
    """
    Generation engine used by the ResponseOrchestrator.

    Example:
        engine = ChatGenerationEngine()
        reply = engine.generate(conversation, template_model)
    """

    def __init__(
        self, raw_engine: Optional[BaseEngine] = None, personas: Optional[PersonaCatalog] = None
    ) -> None:
        """
        Args:
            raw_engine: LLM to call. Routed per call for task "chat" when None.
            personas: Persona catalog. Loaded from config when None.
        """
        self._raw_engine = raw_engine
        self.personas = personas or PersonaCatalog()

    def _engine(self) -> BaseEngine:
        return self._raw_engine or router.route("chat")

    def _context(self, conversation: Conversation, template_model: dict[str, Any]) -> list[dict]:
        context = [{"role": "system", "content": render_system_prompt(template_model, self.personas)}]
        context.extend(m.to_dict() for m in conversation.messages)
        return context

    def generate(self, conversation: Conversation, template_model: dict[str, Any]) -> str:
        """Reply to the conversation's latest user message."""
        engine = self._engine()
        reply = engine.generate("", self._context(conversation, template_model))
        _log.info("GENERATE | conversation=%s | engine=%s | %d chars", conversation.id, engine.get_name(), len(reply))
        return reply

    def generate_for_prompt(
        self, conversation: Conversation, prompt: str, template_model: dict[str, Any]
    ) -> str:
        """Reply to an injected prompt instead of the latest stored message."""
        engine = self._engine()
        reply = engine.generate(_TRIGGER_PREAMBLE + prompt, self._context(conversation, template_model))
        _log.info(
            "GENERATE TRIGGER | conversation=%s | engine=%s | %d chars",
            conversation.id, engine.get_name(), len(reply),
        )
        return reply
