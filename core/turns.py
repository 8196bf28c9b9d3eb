"""
turns.py

One turn, end to end: resolve identity -> classify (after the first message)
-> generate -> append and send -> narrate.
Each turn runs synchronously on one worker; submit_message() hands turns to a
thread pool so no turn waits on another.
Part of Lantern - Conversational Turn Dispatcher.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Optional

import config
from core.classifier import TurnClassifier, truncate
from core.conversation import Conversation, Message
from core.identity import Identity, IdentityDescriptor
from core.interfaces import Channel
from core.narration import Narrator
from core.orchestrator import ResponseOrchestrator
from core.resolver import IdentityResolver

_log = logging.getLogger("lantern.turns")
_handler = logging.FileHandler(config.LOGS_DIR / "turns.log")
_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-8s | %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))


class TurnHandler:
    """
    Handles inbound user messages.

    The transport appends the user's message to the conversation before
    handing the turn over; the handler appends the assistant reply.

    Example:
        handler = TurnHandler(resolver, classifier, orchestrator, channel, narrator)
        conv.add_message(Message.user("Hi"))
        handler.handle_message(conv, PlatformDescriptor("42", username="ada"), "Hi")
    """

    def __init__(
        self,
        resolver: IdentityResolver,
        classifier: Optional[TurnClassifier],
        orchestrator: ResponseOrchestrator,
        channel: Channel,
        narrator: Optional[Narrator] = None,
        workers: Optional[int] = None,
    ) -> None:
        """
        Args:
            resolver: Identity resolver.
            classifier: Conversational short-circuit, or None to always generate.
            orchestrator: Reply generation.
            channel: Delivery channel for replies.
            narrator: Narration step, or None to skip narration.
            workers: Thread pool size for submit_message. Defaults to config.TURN_WORKERS.
        """
        self.resolver = resolver
        self.classifier = classifier
        self.orchestrator = orchestrator
        self.channel = channel
        self.narrator = narrator
        self._executor = ThreadPoolExecutor(
            max_workers=workers or config.TURN_WORKERS, thread_name_prefix="lantern-turn"
        )

    def submit_message(
        self, conversation: Conversation, descriptor: Optional[IdentityDescriptor], user_message: str
    ) -> Future:
        """Run handle_message on a worker thread."""
        return self._executor.submit(self.handle_message, conversation, descriptor, user_message)

    def handle_message(
        self, conversation: Conversation, descriptor: Optional[IdentityDescriptor], user_message: str
    ) -> Optional[Message]:
        """
        Handle one user turn.

        Args:
            conversation: Conversation already holding the user's message.
            descriptor: Identity descriptor of the sender.
            user_message: Text of the message from the inbound event.

        Returns:
            The reply that was sent, or None when no identity could be
            established.

        Raises:
            UnsupportedDescriptorError: For an unrecognised descriptor type.
        """
        identity = self.resolver.try_resolve(descriptor)
        if identity is None:
            _log.error("TURN ABORTED | conversation=%s | identity unresolved", conversation.id)
            return None

        _log.info(
            "TURN START | conversation=%s | identity=%s | message='%s'",
            conversation.id, identity.id, truncate(user_message),
        )

        # One model per turn: the classifier and generation see the same greetByName
        model = self.orchestrator.build_template_model(identity, conversation)
        reply = self._short_circuit(conversation, user_message, model)
        if reply is None:
            reply = self.orchestrator.respond_to_message(conversation, identity, model)

        self.deliver(conversation, identity, reply)
        return reply

    def _short_circuit(
        self, conversation: Conversation, user_message: str, model: dict[str, Any]
    ) -> Optional[Message]:
        if self.classifier is None or not self.classifier.should_classify(conversation):
            return None
        try:
            result = self.classifier.classify(user_message, conversation, model)
        except Exception as exc:
            _log.warning(
                "CLASSIFY FAILED | conversation=%s | falling back to full pipeline | %s: %s",
                conversation.id, type(exc).__name__, exc,
            )
            return None
        if result.short_circuits:
            _log.info("SHORT CIRCUIT | conversation=%s", conversation.id)
            return Message.assistant(result.response)
        return None

    def deliver(self, conversation: Conversation, identity: Identity, reply: Message) -> None:
        """
        Append *reply*, send it, then narrate it.

        Shared by user turns and trigger turns.
        """
        conversation.add_message(reply)
        if self.channel.send(identity, reply):
            _log.info("SEND OK | conversation=%s | identity=%s", conversation.id, identity.id)
        else:
            _log.error("SEND FAILED | conversation=%s | identity=%s", conversation.id, identity.id)

        if self.narrator is not None:
            self.narrator.narrate(reply, conversation, identity)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        if self.narrator is not None:
            self.narrator.shutdown(wait=wait)
