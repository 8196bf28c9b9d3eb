"""
status.py

Transient "working" indicators on the user's channel.
StatusNotifier.working() brackets a block of work: it emits a working status
before the block and exactly one clearing status after it, on every exit path.
Part of Lantern - Conversational Turn Dispatcher.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator, Optional

import config
from core.identity import Identity
from core.interfaces import Channel

_log = logging.getLogger("lantern.status")
_handler = logging.FileHandler(config.LOGS_DIR / "turns.log")
_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-8s | %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))

NARRATING_TEXT = "Narrating..."


@dataclass(frozen=True)
class StatusUpdate:
    """Ephemeral status sent out-of-band. A text of None clears the status."""

    target_identity_id: str
    text: Optional[str]
    from_id: str = config.BOT_USER_ID
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def clears(self) -> bool:
        return self.text is None


class StatusNotifier:
    """
    Emits and clears status updates through a delivery channel.

    Example:
        notifier = StatusNotifier(channel)
        with notifier.working(identity):
            do_slow_thing()
    """

    def __init__(self, channel: Channel, from_id: Optional[str] = None) -> None:
        self.channel = channel
        self.from_id = from_id or config.BOT_USER_ID

    def emit(self, identity: Identity, text: Optional[str]) -> StatusUpdate:
        """
        Send one status update. Delivery errors are logged, never raised.

        Args:
            identity: Identity whose channel receives the status.
            text: Status text, or None to clear.

        Returns:
            The StatusUpdate that was sent.
        """
        update = StatusUpdate(target_identity_id=identity.id, text=text, from_id=self.from_id)
        try:
            self.channel.send_status(identity, text)
        except Exception as exc:
            _log.error("STATUS FAILED | identity=%s | text=%r | %s", identity.id, text, exc)
        else:
            _log.debug("STATUS | identity=%s | text=%r", identity.id, text)
        return update

    @contextmanager
    def working(self, identity: Identity, text: str = NARRATING_TEXT) -> Iterator[bool]:
        """
        Bracket a block with a working status and its clear.

        Nothing is emitted when the identity has no status target.

        Args:
            identity: Identity to notify.
            text: Working status text.

        Yields:
            True if a working status was emitted.
        """
        if self.channel.status_target(identity) is None:
            yield False
            return

        self.emit(identity, text)
        try:
            yield True
        finally:
            self.emit(identity, None)
