"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import os
import sys
import tempfile
import threading
from pathlib import Path
from typing import Optional

import pytest

# Ensure the project root is on the import path (for local imports without installing)
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Keep test logs out of the working tree; must happen before config is imported
os.environ.setdefault("LOGS_DIR", tempfile.mkdtemp(prefix="lantern-test-logs-"))

from core.conversation import Conversation, Message  # noqa: E402
from core.identity import Identity  # noqa: E402
from core.interfaces import ClassificationResult  # noqa: E402
from core.narration import NarrationCache, Narrator  # noqa: E402
from core.classifier import TurnClassifier  # noqa: E402
from core.orchestrator import ResponseOrchestrator  # noqa: E402
from core.resolver import IdentityResolver  # noqa: E402
from core.status import StatusNotifier  # noqa: E402
from core.turns import TurnHandler  # noqa: E402
from database.identity_store import SqlIdentityStore  # noqa: E402


class SpyGenerationEngine:
    """Records calls; returns *reply* or raises *error*."""

    def __init__(self, reply: str = "Generated reply", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls: list[tuple] = []

    def generate(self, conversation, template_model):
        self.calls.append(("generate", conversation, None, template_model))
        if self.error:
            raise self.error
        return self.reply

    def generate_for_prompt(self, conversation, prompt, template_model):
        self.calls.append(("generate_for_prompt", conversation, prompt, template_model))
        if self.error:
            raise self.error
        return self.reply


class SpyClassificationEngine:
    def __init__(self, result: Optional[ClassificationResult] = None, error: Optional[Exception] = None):
        self.result = result or ClassificationResult()
        self.error = error
        self.models: list[dict] = []

    def classify(self, model):
        self.models.append(model)
        if self.error:
            raise self.error
        return self.result


class SpyNarrationEngine:
    def __init__(self, text: str = "Narrated.", error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.calls: list[tuple[str, Optional[str]]] = []

    def narrate(self, text, persona):
        self.calls.append((text, persona))
        if self.error:
            raise self.error
        return self.text


class SpyChannel:
    """Records sends and statuses. has_status_target=False models a channel with no status surface."""

    def __init__(self, has_status_target: bool = True, send_ok: bool = True):
        self.has_status_target = has_status_target
        self.send_ok = send_ok
        self.sent: list[tuple[Identity, Message]] = []
        self.statuses: list[tuple[str, Optional[str]]] = []
        self._lock = threading.Lock()

    def status_target(self, identity):
        return identity.id if self.has_status_target else None

    def send(self, identity, message):
        with self._lock:
            self.sent.append((identity, message))
        return self.send_ok

    def send_status(self, identity, text):
        with self._lock:
            self.statuses.append((identity.id, text))
        return True


@pytest.fixture
def store(tmp_path: Path) -> SqlIdentityStore:
    """Identity store backed by a throwaway SQLite file."""
    return SqlIdentityStore(f"sqlite:///{tmp_path / 'identities.db'}")


@pytest.fixture
def resolver(store: SqlIdentityStore) -> IdentityResolver:
    return IdentityResolver(store)


@pytest.fixture
def generation() -> SpyGenerationEngine:
    return SpyGenerationEngine()


@pytest.fixture
def classification() -> SpyClassificationEngine:
    return SpyClassificationEngine()


@pytest.fixture
def narration_engine() -> SpyNarrationEngine:
    return SpyNarrationEngine()


@pytest.fixture
def channel() -> SpyChannel:
    return SpyChannel()


@pytest.fixture
def narration_cache() -> NarrationCache:
    return NarrationCache()


@pytest.fixture
def handler(resolver, classification, generation, narration_engine, channel, narration_cache):
    """TurnHandler wired with spies and inline narration."""
    narrator = Narrator(
        narration_engine, narration_cache, StatusNotifier(channel),
        default_persona="adaptive", mode="inline",
    )
    h = TurnHandler(
        resolver,
        TurnClassifier(classification),
        ResponseOrchestrator(generation, default_persona="adaptive"),
        channel,
        narrator,
        workers=4,
    )
    yield h
    h.shutdown()


def conversation_with(*texts: str) -> Conversation:
    """Conversation alternating user/assistant messages, starting with the user."""
    conv = Conversation()
    for i, text in enumerate(texts):
        conv.add_message(Message.user(text) if i % 2 == 0 else Message.assistant(text))
    return conv
