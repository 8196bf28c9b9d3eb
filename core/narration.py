"""
narration.py

Best-effort narration of assistant replies.

Narrator.narrate() runs after the reply has been sent. It brackets the
narration engine call with a "Narrating..." status, stores the result in the
NarrationCache keyed by conversation id, and never lets a failure reach the
turn. In background mode the work runs on a dedicated thread pool so
narration latency is not added to the turn.
Part of Lantern - Conversational Turn Dispatcher.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

import config
from core.conversation import Conversation, Message
from core.identity import Identity
from core.interfaces import NarrationEngine
from core.status import StatusNotifier

_log = logging.getLogger("lantern.narration")
_handler = logging.FileHandler(config.LOGS_DIR / "turns.log")
_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-8s | %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))


class NarrationCache:
    """
    conversation id -> latest narration text. Last write wins; no eviction.

    Example:
        cache = NarrationCache()
        cache.put("conv-1", "Here's the gist.")
        cache.get("conv-1")
    """

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}
        self._lock = threading.Lock()

    def put(self, conversation_id: str, text: str) -> None:
        with self._lock:
            self._entries[conversation_id] = text

    def get(self, conversation_id: str) -> Optional[str]:
        with self._lock:
            return self._entries.get(conversation_id)

    def consume_for_delivery(self, conversation_id: str) -> Optional[str]:
        """Read the narration for delivery, leaving it for persistence."""
        return self.get(conversation_id)

    def consume_for_persistence(self, conversation_id: str) -> Optional[str]:
        """Remove and return the narration once it has been persisted."""
        with self._lock:
            return self._entries.pop(conversation_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class Narrator:
    """
    Computes and caches narrations with a status bracket.

    Example:
        narrator = Narrator(LlmNarrationEngine(), NarrationCache(), StatusNotifier(channel))
        narrator.narrate(reply, conversation, identity)
    """

    def __init__(
        self,
        engine: NarrationEngine,
        cache: NarrationCache,
        notifier: StatusNotifier,
        default_persona: Optional[str] = None,
        mode: Optional[str] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        """
        Args:
            engine: Narration engine.
            cache: Where narrations are stored.
            notifier: Status bracket around the engine call.
            default_persona: Persona for identities without one.
            mode: "background" or "inline". Defaults to config.NARRATION_MODE.
            executor: Pool for background mode; one is created when None.
        """
        self.engine = engine
        self.cache = cache
        self.notifier = notifier
        self.default_persona = default_persona or config.DEFAULT_PERSONA
        self.mode = mode or config.NARRATION_MODE
        if self.mode not in ("background", "inline"):
            raise ValueError(f"Unknown narration mode: {self.mode!r}")
        self._executor = executor
        if self.mode == "background" and self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="lantern-narration")

    def narrate(
        self, reply: Message, conversation: Conversation, identity: Identity
    ) -> Optional[Future]:
        """
        Narrate *reply* for *conversation*.

        Returns:
            The Future of the background task, or None in inline mode.
        """
        if self.mode == "inline":
            self._run(reply, conversation, identity)
            return None
        future = self._executor.submit(self._run, reply, conversation, identity)
        future.add_done_callback(self._log_completion)
        return future

    @staticmethod
    def _log_completion(future: Future) -> None:
        if future.cancelled():
            _log.warning("NARRATION CANCELLED")
            return
        exc = future.exception()
        if exc is not None:
            _log.error("NARRATION CRASHED | %s: %s", type(exc).__name__, exc)

    def _run(self, reply: Message, conversation: Conversation, identity: Identity) -> None:
        persona = identity.persona or self.default_persona
        with self.notifier.working(identity):
            try:
                text = self.engine.narrate(reply.content, persona)
            except Exception as exc:
                _log.error(
                    "NARRATION FAILED | conversation=%s | identity=%s | %s: %s",
                    conversation.id, identity.id, type(exc).__name__, exc,
                )
                return
            self.cache.put(conversation.id, text)
            _log.info(
                "NARRATION DONE | conversation=%s | persona=%s | %d chars",
                conversation.id, persona, len(text),
            )

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
