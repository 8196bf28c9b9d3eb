"""
interfaces.py

Protocols for the collaborators the dispatcher calls but does not own:
generation, classification and narration engines, the identity store and
delivery channels. Default implementations live in engines/, database/ and
delivery/; tests substitute spies.
Part of Lantern - Conversational Turn Dispatcher.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol

from core.conversation import Conversation, Message
from core.identity import Identity


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of the cheap conversational pre-check. Never persisted."""

    conversational: bool = False
    response: Optional[str] = None

    @property
    def short_circuits(self) -> bool:
        """True when the response should be sent instead of generating one."""
        return self.conversational and bool(self.response)


class GenerationEngine(Protocol):
    def generate(self, conversation: Conversation, template_model: dict[str, Any]) -> str:
        ...

    def generate_for_prompt(
        self, conversation: Conversation, prompt: str, template_model: dict[str, Any]
    ) -> str:
        ...


class ClassificationEngine(Protocol):
    def classify(self, model: dict[str, Any]) -> ClassificationResult:
        ...


class NarrationEngine(Protocol):
    def narrate(self, text: str, persona: Optional[str]) -> str:
        ...


class IdentityStore(Protocol):
    def find_by_origin_key(self, kind: str, key: str) -> Optional[Identity]:
        ...

    def create_idempotent(self, seed: Identity) -> Identity:
        ...

    def find_by_id(self, identity_id: str) -> Optional[Identity]:
        ...

    def update_field(self, identity_id: str, field: str, value: Optional[str]) -> None:
        ...


class Channel(Protocol):
    """Fire-and-forget delivery; implementations log failures and never raise."""

    def send(self, identity: Identity, message: Message) -> bool:
        ...

    def send_status(self, identity: Identity, text: Optional[str]) -> bool:
        ...

    def status_target(self, identity: Identity) -> Optional[str]:
        ...
