"""
classifier.py

Cheap pre-pass that decides whether a user turn is purely conversational
(acknowledgement, greeting, reaction) and can be answered without the full
generation pipeline.

The utterance classified is the one carried by the triggering event. The
stored conversation is used only for the recent-context summary; when its
last user message disagrees with the event payload the mismatch is logged.
Part of Lantern - Conversational Turn Dispatcher.
"""

import logging
from typing import Any

import config
from core.conversation import Conversation, Message, Role
from core.interfaces import ClassificationEngine, ClassificationResult

_log = logging.getLogger("lantern.classifier")
_handler = logging.FileHandler(config.LOGS_DIR / "turns.log")
_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-8s | %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))

CONTEXT_MESSAGES = 6
CONTEXT_CHARS = 200


def truncate(text: str, max_length: int = 120) -> str:
    """Cut *text* to *max_length* characters, appending "..." when cut."""
    return text[:max_length] + "..." if len(text) > max_length else text


def build_recent_context(messages: list[Message]) -> str:
    """
    Render the last few messages as role-prefixed lines.

    Args:
        messages: Conversation messages, oldest first.

    Returns:
        Up to 6 lines of "<role>: <content>", each content cut to 200 chars.

    Example:
        build_recent_context([Message.user("hi")])  # "user: hi"
    """
    lines = []
    for msg in messages[-CONTEXT_MESSAGES:]:
        lines.append(f"{msg.role.value}: {truncate(msg.content, CONTEXT_CHARS)}")
    return "\n".join(lines)


class TurnClassifier:
    """
    Wraps a classification engine with the turn-level rules.

    Example:
        classifier = TurnClassifier(LlmClassificationEngine())
        if classifier.should_classify(conv):
            result = classifier.classify("ok thanks", conv, template_model)
    """

    def __init__(self, engine: ClassificationEngine) -> None:
        self.engine = engine

    @staticmethod
    def should_classify(conversation: Conversation) -> bool:
        """The first turn always takes the full pipeline."""
        return len(conversation) > 1

    def classify(
        self,
        last_user_utterance: str,
        conversation: Conversation,
        template_model: dict[str, Any],
    ) -> ClassificationResult:
        """
        Classify the user's latest utterance.

        Args:
            last_user_utterance: Text of the triggering user message.
            conversation: The conversation, used for recent context.
            template_model: Persona/user model shared with generation.

        Returns:
            The engine's ClassificationResult.

        Raises:
            Exception: Whatever the engine raises; callers fall back to the
                full pipeline.
        """
        messages = conversation.messages
        stored_last = next((m for m in reversed(messages) if m.role == Role.USER), None)
        if stored_last is not None and stored_last.content != last_user_utterance:
            _log.warning(
                "CLASSIFY | stored last user message differs from event payload "
                "(conversation order not authoritative) | conversation=%s",
                conversation.id,
            )

        model = dict(template_model)
        model["conversationContext"] = build_recent_context(messages)
        model["userMessage"] = last_user_utterance

        result = self.engine.classify(model)
        _log.info(
            "CLASSIFY RESULT | input='%s' | conversational=%s | response='%s'",
            truncate(last_user_utterance),
            result.conversational,
            truncate(result.response) if result.response is not None else "null",
        )
        return result
