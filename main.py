"""
main.py

Entry point for Lantern - Conversational Turn Dispatcher.
Wires the dispatcher components together and runs a CLI chat loop, with the
scheduled-trigger daemon optionally running alongside it.
Part of Lantern - Conversational Turn Dispatcher.
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from typing import Optional

import config
from background.process import TriggerDaemon
from background.schedule import TriggerSchedule
from background.triggers import TriggerDispatcher
from background.welcome import WelcomeGreeter
from core.classifier import TurnClassifier
from core.conversation import ConversationRegistry, Message
from core.identity import Identity, WebUserDescriptor
from core.interfaces import Channel
from core.narration import NarrationCache, Narrator
from core.orchestrator import ResponseOrchestrator
from core.personas import PersonaCatalog
from core.resolver import IdentityResolver
from core.status import StatusNotifier
from core.turns import TurnHandler
from database.identity_store import SqlIdentityStore
from delivery.router import ChannelRouter
from engines.classification import LlmClassificationEngine
from engines.generation import ChatGenerationEngine
from engines.narration import LlmNarrationEngine

_log = logging.getLogger("lantern.main")
_handler = logging.FileHandler(config.LOGS_DIR / "main.log")
_handler.setFormatter(logging.Formatter("%(asctime)s  %(levelname)-8s  %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))

CLI_ORIGIN_PREFIX = "cli:"


@dataclass
class Runtime:
    """All wired components of a running dispatcher."""

    store: SqlIdentityStore
    resolver: IdentityResolver
    handler: TurnHandler
    dispatcher: TriggerDispatcher
    narration_cache: NarrationCache
    conversations: ConversationRegistry
    greeter: Optional[WelcomeGreeter] = None

    def shutdown(self) -> None:
        self.dispatcher.shutdown()
        self.handler.shutdown()


class ConsoleChannel:
    """Prints replies for CLI identities; everything else goes to the wrapped channel."""

    def __init__(self, fallback: Channel) -> None:
        self.fallback = fallback

    @staticmethod
    def _is_cli(identity: Identity) -> bool:
        return (identity.web_user_id or "").startswith(CLI_ORIGIN_PREFIX)

    def status_target(self, identity: Identity) -> Optional[str]:
        if self._is_cli(identity):
            return identity.web_user_id
        return self.fallback.status_target(identity)

    def send(self, identity: Identity, message: Message) -> bool:
        if not self._is_cli(identity):
            return self.fallback.send(identity, message)
        print(f"\nLantern: {message.content}\n")
        return True

    def send_status(self, identity: Identity, text: Optional[str]) -> bool:
        if not self._is_cli(identity):
            return self.fallback.send_status(identity, text)
        if text:
            print(f"  ({text})")
        return True


def build_runtime(
    database_url: Optional[str] = None,
    channel: Optional[Channel] = None,
    narration_mode: Optional[str] = None,
) -> Runtime:
    """
    Build the dispatcher with its default collaborators.

    Args:
        database_url: SQLAlchemy URL. Defaults to config.DATABASE_URL.
        channel: Delivery channel. Defaults to a ChannelRouter.
        narration_mode: "background" or "inline". Defaults to config.NARRATION_MODE.

    Returns:
        The wired Runtime.

    Example:
        runtime = build_runtime("sqlite:///:memory:")
    """
    personas = PersonaCatalog()
    channel = channel or ChannelRouter()
    store = SqlIdentityStore(database_url)
    resolver = IdentityResolver(store)

    narration_cache = NarrationCache()
    narrator = None
    if config.NARRATION_ENABLED:
        narrator = Narrator(
            LlmNarrationEngine(personas=personas),
            narration_cache,
            StatusNotifier(channel),
            default_persona=personas.default,
            mode=narration_mode,
        )

    handler = TurnHandler(
        resolver,
        TurnClassifier(LlmClassificationEngine(personas=personas)),
        ResponseOrchestrator(ChatGenerationEngine(personas=personas), default_persona=personas.default),
        channel,
        narrator,
    )
    dispatcher = TriggerDispatcher(handler)
    conversations = ConversationRegistry()

    greeter = None
    if config.WELCOME_ENABLED:
        greeter = WelcomeGreeter(dispatcher, conversations)
        resolver.add_created_listener(greeter.greet_new_user)

    _log.info("Runtime built | db=%s | narration=%s | welcome=%s", database_url or config.DATABASE_URL,
              narrator.mode if narrator else "disabled", "on" if greeter else "off")
    return Runtime(
        store=store,
        resolver=resolver,
        handler=handler,
        dispatcher=dispatcher,
        narration_cache=narration_cache,
        conversations=conversations,
        greeter=greeter,
    )


def print_banner() -> None:
    """Print the Lantern welcome banner."""
    print()
    print("=" * 60)
    print("   LANTERN - Conversational Turn Dispatcher")
    print("=" * 60)
    print()


def chat_loop(runtime: Runtime, descriptor: WebUserDescriptor) -> None:
    """
    Run the interactive chat loop.

    Args:
        runtime: The wired dispatcher.
        descriptor: Identity descriptor of the CLI user.
    """
    conversation = runtime.conversations.get_or_open(descriptor.web_user_id)
    print("Type your message and press Enter to chat.")
    print("Type 'exit' or 'quit' to stop.")
    print()

    while True:
        try:
            user_input = input("You: ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nGoodbye!")
            break

        if not user_input:
            continue

        if user_input.lower() in ("exit", "quit", "bye"):
            print("Goodbye!")
            break

        conversation.add_message(Message.user(user_input))
        try:
            runtime.handler.handle_message(conversation, descriptor, user_input)
        except Exception as exc:
            print(f"\n[Error] Unexpected error: {exc}")
            _log.exception("Unexpected error in chat loop")


def parse_args() -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(description="Lantern - Conversational Turn Dispatcher")
    parser.add_argument("--user", default="owner", help="CLI user name (default: owner)")
    parser.add_argument("--persona", help="Set the user's persona before chatting")
    parser.add_argument(
        "--daemon", action="store_true", help="Run the scheduled-trigger daemon alongside the chat"
    )
    parser.add_argument(
        "--show-config", action="store_true", help="Print the effective configuration and exit"
    )
    return parser.parse_args()


def main() -> None:
    """
    Main entry point. Validates configuration, builds the runtime and starts
    the CLI chat loop.
    """
    args = parse_args()

    if args.show_config:
        for key, value in config.as_dict().items():
            print(f"{key:22} {value}")
        return

    config.validate_narration_mode()
    config.validate_required_for_engine(config.CHAT_ENGINE)

    print_banner()
    runtime = build_runtime(channel=ConsoleChannel(ChannelRouter()))

    descriptor = WebUserDescriptor(
        web_user_id=f"{CLI_ORIGIN_PREFIX}{args.user}", display_name=args.user, username=args.user
    )
    identity = runtime.resolver.resolve(descriptor)
    if args.persona:
        runtime.store.update_field(identity.id, "persona", args.persona)
        print(f"Persona set to '{args.persona}'")
    print(f"User: {identity.display_label} ({identity.id})")

    daemon = None
    if args.daemon:
        daemon = TriggerDaemon(
            runtime.dispatcher,
            TriggerSchedule(),
            runtime.conversations,
            fallback_descriptor=descriptor,
            default_conversation_key=descriptor.web_user_id,
        )
        daemon.start()
        print(f"Trigger daemon running ({len(daemon.schedule.entries)} scheduled triggers)")

    print("-" * 60)
    try:
        chat_loop(runtime, descriptor)
    except Exception as exc:
        print(f"\n[Fatal] {exc}")
        _log.exception("Fatal error in main")
        sys.exit(1)
    finally:
        if daemon is not None:
            daemon.stop()
        runtime.shutdown()

    _log.info("Lantern shutdown complete")


if __name__ == "__main__":
    main()
