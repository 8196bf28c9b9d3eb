"""
welcome.py

Greets people the first time Lantern sees them.
WelcomeGreeter listens for identities created by the IdentityResolver and
submits a welcome trigger turn for each one. When the welcome cannot be
generated the user gets a fixed welcome message instead of the apology.
Part of Lantern - Conversational Turn Dispatcher.
"""

import logging
from concurrent.futures import Future
from typing import Optional

import config
from background.triggers import Trigger, TriggerDispatcher
from core.conversation import ConversationRegistry
from core.identity import Identity, KnownIdentityDescriptor, PlatformLinked, WebAnonymous

_log = logging.getLogger("lantern.welcome")
_handler = logging.FileHandler(config.LOGS_DIR / "triggers.log")
_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-8s | %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))

WELCOME_PROMPT_TEMPLATE = (
    "{name} is talking to you for the first time. Please greet and welcome them."
)
DEFAULT_WELCOME_TEXT = "Welcome! How can I help you today?"


class WelcomeGreeter:
    """
    Sends a welcome turn to newly created identities.

    Example:
        greeter = WelcomeGreeter(dispatcher, conversations)
        resolver.add_created_listener(greeter.greet_new_user)
    """

    def __init__(
        self,
        dispatcher: TriggerDispatcher,
        conversations: ConversationRegistry,
        welcome_text: Optional[str] = None,
    ) -> None:
        """
        Args:
            dispatcher: Runs the welcome turn on its worker pool.
            conversations: Registry the welcome conversation is opened in.
            welcome_text: Static welcome used when generation fails.
        """
        self.dispatcher = dispatcher
        self.conversations = conversations
        self.welcome_text = welcome_text or DEFAULT_WELCOME_TEXT

    @staticmethod
    def should_greet(identity: Identity) -> bool:
        """The shared anonymous identity and platform bots are never greeted."""
        if isinstance(identity.origin, WebAnonymous):
            return False
        if isinstance(identity.origin, PlatformLinked) and identity.origin.is_bot:
            return False
        return True

    @staticmethod
    def conversation_key(identity: Identity) -> str:
        return identity.web_user_id or identity.id

    def greet_new_user(self, identity: Identity) -> Optional[Future]:
        """
        Submit the welcome turn for *identity*.

        Args:
            identity: The identity that was just created.

        Returns:
            Future of the welcome turn, or None if the identity is not greeted.
        """
        if not self.should_greet(identity):
            _log.debug("WELCOME SKIPPED | identity=%s", identity.id)
            return None

        trigger = Trigger(
            prompt=WELCOME_PROMPT_TEMPLATE.format(name=identity.display_label),
            on_behalf_of=(KnownIdentityDescriptor(identity.id),),
            fallback_text=self.welcome_text,
        )
        conversation = self.conversations.get_or_open(self.conversation_key(identity))
        _log.info("WELCOME START | identity=%s | conversation=%s", identity.id, conversation.id)

        future = self.dispatcher.submit(conversation, trigger)
        future.add_done_callback(lambda f: self._log_completion(f, identity))
        return future

    @staticmethod
    def _log_completion(future: Future, identity: Identity) -> None:
        if future.cancelled():
            _log.warning("WELCOME CANCELLED | identity=%s", identity.id)
            return
        exc = future.exception()
        if exc is not None:
            _log.error("WELCOME FAILED | identity=%s | %s: %s", identity.id, type(exc).__name__, exc)
        else:
            _log.info("WELCOME DONE | identity=%s", identity.id)
