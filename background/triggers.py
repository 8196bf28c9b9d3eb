"""
triggers.py

System-initiated turns. A Trigger carries a prompt and the identities it acts
on behalf of; TriggerDispatcher resolves the target and runs the turn through
the same generate -> send -> narrate path as a user message.
Part of Lantern - Conversational Turn Dispatcher.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

import config
from core.conversation import Conversation, Message
from core.identity import IdentityDescriptor
from core.turns import TurnHandler

_log = logging.getLogger("lantern.triggers")
_log_file = config.LOGS_DIR / "triggers.log"
_handler = logging.FileHandler(_log_file)
_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-8s | %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))


@dataclass(frozen=True)
class Trigger:
    """
    A system- or schedule-initiated request for an assistant turn.

    Attributes:
        prompt: Instruction injected into generation.
        on_behalf_of: Identity descriptors, in priority order. Only the first
            is used; empty means the dispatching context's own identity.
        fallback_text: Reply sent instead of the apology if generation fails.
    """

    prompt: str
    on_behalf_of: tuple[IdentityDescriptor, ...] = ()
    fallback_text: Optional[str] = None

    def target(self, fallback_descriptor: Optional[IdentityDescriptor]) -> Optional[IdentityDescriptor]:
        return self.on_behalf_of[0] if self.on_behalf_of else fallback_descriptor


class TriggerDispatcher:
    """
    Runs trigger turns.

    Example:
        dispatcher = TriggerDispatcher(turn_handler)
        trigger = Trigger("Remind them about the demo", (KnownIdentityDescriptor(uid),))
        dispatcher.dispatch(conversation, trigger, fallback_descriptor=None)
    """

    def __init__(self, handler: TurnHandler, workers: Optional[int] = None) -> None:
        self.handler = handler
        self._executor = ThreadPoolExecutor(
            max_workers=workers or config.TURN_WORKERS, thread_name_prefix="lantern-trigger"
        )

    def submit(
        self, conversation: Conversation, trigger: Trigger, fallback_descriptor: Optional[IdentityDescriptor] = None
    ) -> Future:
        """Run dispatch on a worker thread."""
        return self._executor.submit(self.dispatch, conversation, trigger, fallback_descriptor)

    def dispatch(
        self, conversation: Conversation, trigger: Trigger, fallback_descriptor: Optional[IdentityDescriptor] = None
    ) -> Optional[Message]:
        """
        Handle one trigger turn.

        Args:
            conversation: Conversation the reply is appended to.
            trigger: The trigger to act on.
            fallback_descriptor: Identity used when the trigger names none.

        Returns:
            The reply that was sent, or None if the target could not be
            resolved.

        Raises:
            UnsupportedDescriptorError: For an unrecognised descriptor type.
        """
        descriptor = trigger.target(fallback_descriptor)
        identity = self.handler.resolver.try_resolve(descriptor)
        if identity is None:
            _log.error(
                "TRIGGER ABORTED | conversation=%s | target unresolved | prompt='%s'",
                conversation.id, trigger.prompt[:120],
            )
            return None

        _log.info(
            "TRIGGER START | conversation=%s | identity=%s | prompt='%s'",
            conversation.id, identity.id, trigger.prompt[:120],
        )
        reply = self.handler.orchestrator.respond_to_trigger(
            conversation, trigger.prompt, identity, fallback_text=trigger.fallback_text
        )
        self.handler.deliver(conversation, identity, reply)
        return reply

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
