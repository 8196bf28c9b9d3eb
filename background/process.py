"""
process.py

Daemon thread that polls the trigger schedule and dispatches due triggers.
Part of Lantern - Conversational Turn Dispatcher.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Optional

import config
from background.schedule import TriggerSchedule
from background.triggers import TriggerDispatcher
from core.conversation import ConversationRegistry

_log = logging.getLogger("lantern.daemon")
_log_file = config.LOGS_DIR / "daemon.log"
_handler = logging.FileHandler(_log_file)
_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-8s | %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))


class TriggerDaemon:
    """
    Background loop for scheduled triggers.

    Every interval_seconds:
    - Ask the schedule for due entries
    - Dispatch each through the TriggerDispatcher
    - Mark it fired

    Example:
        daemon = TriggerDaemon(dispatcher, TriggerSchedule(), registry, fallback)
        daemon.start()
        # ... later ...
        daemon.stop()
    """

    def __init__(
        self,
        dispatcher: TriggerDispatcher,
        schedule: TriggerSchedule,
        conversations: ConversationRegistry,
        fallback_descriptor: object = None,
        default_conversation_key: str = "default",
        interval_seconds: Optional[int] = None,
    ):
        """
        Args:
            dispatcher: Runs the trigger turns.
            schedule: Source of due triggers.
            conversations: Where trigger replies are appended.
            fallback_descriptor: Identity for entries without on_behalf_of.
            default_conversation_key: Conversation for entries without on_behalf_of.
            interval_seconds: Seconds between cycles. Defaults to config.TRIGGER_POLL_SECONDS.
        """
        self.dispatcher = dispatcher
        self.schedule = schedule
        self.conversations = conversations
        self.fallback_descriptor = fallback_descriptor
        self.default_conversation_key = default_conversation_key
        self.interval_seconds = interval_seconds or config.TRIGGER_POLL_SECONDS
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._start_time: Optional[datetime] = None
        self._cycle_count = 0
        self._last_trigger: Optional[str] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """
        Start the loop in a daemon thread. Never blocks the caller.
        """
        if self.running:
            _log.warning("DAEMON | Already running")
            return

        self._stop.clear()
        self._start_time = datetime.now(timezone.utc)
        self._thread = threading.Thread(target=self._loop, name="lantern-daemon", daemon=True)
        self._thread.start()
        _log.info("DAEMON STARTED | interval=%ds", self.interval_seconds)

    def stop(self) -> None:
        """Stop the loop and wait briefly for the thread."""
        if not self.running:
            return
        self._stop.set()
        self._thread.join(timeout=5)
        _log.info("DAEMON STOPPED | cycles=%d", self._cycle_count)

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.run_cycle()
            except Exception as exc:
                _log.error("DAEMON CYCLE ERROR | %s", exc)
            self._stop.wait(self.interval_seconds)

    def run_cycle(self, now: Optional[datetime] = None) -> int:
        """
        Execute a single cycle.

        Args:
            now: Evaluation time. Defaults to the current UTC time.

        Returns:
            Number of triggers dispatched.
        """
        self._cycle_count += 1
        now = now or datetime.now(timezone.utc)
        due = self.schedule.due(now)

        for entry in due:
            key = entry.on_behalf_of[0] if entry.on_behalf_of else self.default_conversation_key
            conversation = self.conversations.get_or_open(key)
            try:
                reply = self.dispatcher.dispatch(
                    conversation, entry.to_trigger(), self.fallback_descriptor
                )
            except Exception as exc:
                _log.error("TRIGGER PROCESS ERROR | id=%s | error=%s", entry.id, exc)
                continue
            finally:
                self.schedule.mark_fired(entry.id, now)

            self._last_trigger = entry.id
            _log.info("TRIGGER SENT | id=%s | delivered=%s", entry.id, reply is not None)

        _log.debug("DAEMON CYCLE COMPLETE | cycle=%d | triggers=%d", self._cycle_count, len(due))
        return len(due)

    def get_status(self) -> dict[str, Any]:
        """Running flag, uptime, cycle count and last trigger id."""
        uptime = 0
        if self._start_time:
            uptime = (datetime.now(timezone.utc) - self._start_time).total_seconds()
        return {
            "running": self.running,
            "uptime_seconds": int(uptime),
            "cycle_count": self._cycle_count,
            "interval_seconds": self.interval_seconds,
            "last_trigger": self._last_trigger,
        }
