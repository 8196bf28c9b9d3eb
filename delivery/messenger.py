"""
messenger.py

Telegram delivery channel for Lantern.
Sends replies via the Telegram Bot API and shows the "typing" chat action
while narration runs.
Part of Lantern - Conversational Turn Dispatcher.
"""

import logging
from typing import Optional

import requests

import config
from core.conversation import Message
from core.identity import Identity, PlatformLinked

_log = logging.getLogger("lantern.delivery.telegram")
_log_file = config.LOGS_DIR / "delivery.log"
_handler = logging.FileHandler(_log_file)
_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-8s | %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))

TELEGRAM_API_BASE = "https://api.telegram.org"


class TelegramChannel:
    """
    Channel for platform-linked identities; the platform id is the chat id.

    Every method returns False on failure and never raises.

    Example:
        channel = TelegramChannel()
        channel.send(identity, Message.assistant("Hello from Lantern!"))
    """

    def __init__(self, token: Optional[str] = None, timeout: int = 15) -> None:
        self.token = token or config.TELEGRAM_BOT_TOKEN
        self.timeout = timeout

    def status_target(self, identity: Identity) -> Optional[str]:
        """Chat id for *identity*, or None if it is not a platform identity."""
        if isinstance(identity.origin, PlatformLinked):
            return identity.origin.platform_id
        return None

    def _call(self, method: str, payload: dict, chat_id: str) -> bool:
        if not self.token:
            _log.error("%s FAILED | No TELEGRAM_BOT_TOKEN configured", method.upper())
            return False

        url = f"{TELEGRAM_API_BASE}/bot{self.token}/{method}"
        try:
            response = requests.post(url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout:
            _log.error("%s TIMEOUT | chat_id=%s", method.upper(), chat_id)
            return False
        except requests.exceptions.RequestException as exc:
            _log.error("%s ERROR | chat_id=%s | error=%s", method.upper(), chat_id, exc)
            return False
        except ValueError as exc:
            _log.error("%s BAD RESPONSE | chat_id=%s | error=%s", method.upper(), chat_id, exc)
            return False

        if not data.get("ok"):
            _log.error(
                "%s FAILED | chat_id=%s | error=%s", method.upper(), chat_id, data.get("description")
            )
            return False
        return True

    def send(self, identity: Identity, message: Message) -> bool:
        """
        Send a message via the Telegram Bot API.

        Args:
            identity: Recipient; must be platform-linked.
            message: The assistant message to send.

        Returns:
            True on success, False on failure. Never raises.
        """
        chat_id = self.status_target(identity)
        if chat_id is None:
            _log.error("SEND FAILED | identity=%s is not a Telegram identity", identity.id)
            return False

        ok = self._call(
            "sendMessage",
            {"chat_id": chat_id, "text": message.content, "parse_mode": "Markdown"},
            chat_id,
        )
        if ok:
            _log.info("SEND OK | chat_id=%s | len=%d", chat_id, len(message.content))
        return ok

    def send_status(self, identity: Identity, text: Optional[str]) -> bool:
        """
        Show or clear a working status.

        Telegram has no custom status text; a working status becomes the
        "typing" chat action, which Telegram expires on its own, so clearing
        sends nothing.
        """
        chat_id = self.status_target(identity)
        if chat_id is None:
            return False
        if text is None:
            _log.debug("STATUS CLEAR | chat_id=%s | expires on its own", chat_id)
            return True
        return self._call("sendChatAction", {"chat_id": chat_id, "action": "typing"}, chat_id)
