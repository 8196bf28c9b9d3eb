"""
conversation.py

Conversation and message types shared by the dispatcher.
Conversations are owned by the transport layer; the dispatcher only reads
them and appends assistant replies.
Part of Lantern - Conversational Turn Dispatcher.
"""

from __future__ import annotations

import enum
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


class Role(str, enum.Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True)
class Message:
    """A single immutable chat message."""

    role: Role
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(Role.USER, content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(Role.ASSISTANT, content)

    def to_dict(self) -> dict[str, str]:
        """Convert to the {role, content} dict format engines consume."""
        return {"role": self.role.value, "content": self.content}


class Conversation:
    """
    Ordered, append-only list of messages.

    Appends from racing turns are serialised so the list is never corrupted;
    the resulting order is whichever append wins.

    Example:
        conv = Conversation()
        conv.add_message(Message.user("Hi"))
        len(conv)  # 1
    """

    def __init__(self, id: Optional[str] = None, messages: Optional[list[Message]] = None):
        self.id = id or str(uuid.uuid4())
        self._messages: list[Message] = list(messages or [])
        self._lock = threading.Lock()

    @property
    def messages(self) -> list[Message]:
        """Snapshot of the messages at call time."""
        with self._lock:
            return list(self._messages)

    def add_message(self, message: Message) -> None:
        with self._lock:
            self._messages.append(message)

    def last_message(self, role: Optional[Role] = None) -> Optional[Message]:
        """
        Return the most recent message, optionally of a given role.

        Args:
            role: Restrict to this role when given.

        Returns:
            The message, or None if there is none.
        """
        for msg in reversed(self.messages):
            if role is None or msg.role == role:
                return msg
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)

    def __repr__(self) -> str:
        return f"Conversation(id={self.id!r}, messages={len(self)})"


class ConversationRegistry:
    """
    In-process lookup of open conversations by key.

    Stands in for the transport's own session store when running the CLI or
    the trigger daemon.
    """

    def __init__(self) -> None:
        self._conversations: dict[str, Conversation] = {}
        self._lock = threading.Lock()

    def get_or_open(self, key: str) -> Conversation:
        with self._lock:
            conv = self._conversations.get(key)
            if conv is None:
                conv = Conversation()
                self._conversations[key] = conv
            return conv
