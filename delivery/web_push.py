"""
web_push.py

Web delivery channel: posts messages and status updates as JSON to the web
transport's push endpoint (WEB_PUSH_URL), addressed by web user id.
Part of Lantern - Conversational Turn Dispatcher.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import requests

import config
from core.conversation import Message
from core.identity import Identity

_log = logging.getLogger("lantern.delivery.web")
_handler = logging.FileHandler(config.LOGS_DIR / "delivery.log")
_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-8s | %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))


class WebPushChannel:
    """
    Channel for anonymous and registered web identities.

    Example:
        channel = WebPushChannel("http://localhost:8080/push")
        channel.send_status(identity, "Narrating...")
    """

    def __init__(
        self, url: Optional[str] = None, from_id: Optional[str] = None, timeout: int = 10
    ) -> None:
        self.url = url or config.WEB_PUSH_URL
        self.from_id = from_id or config.BOT_USER_ID
        self.timeout = timeout

    def status_target(self, identity: Identity) -> Optional[str]:
        return identity.web_user_id

    def _post(self, payload: dict[str, Any]) -> bool:
        if not self.url:
            _log.error("PUSH FAILED | No WEB_PUSH_URL configured")
            return False
        try:
            response = requests.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.Timeout:
            _log.error("PUSH TIMEOUT | to=%s | type=%s", payload["to"], payload["type"])
            return False
        except requests.exceptions.RequestException as exc:
            _log.error("PUSH ERROR | to=%s | type=%s | error=%s", payload["to"], payload["type"], exc)
            return False
        return True

    def send(self, identity: Identity, message: Message) -> bool:
        """
        Push an assistant message to the identity's web session.

        Returns:
            True on success, False on failure. Never raises.
        """
        target = self.status_target(identity)
        if target is None:
            _log.error("SEND FAILED | identity=%s is not a web identity", identity.id)
            return False
        ok = self._post({
            "type": "message",
            "to": target,
            "from": self.from_id,
            "role": message.role.value,
            "content": message.content,
            "timestamp": message.timestamp.isoformat(),
        })
        if ok:
            _log.info("SEND OK | web_user=%s | len=%d", target, len(message.content))
        return ok

    def send_status(self, identity: Identity, text: Optional[str]) -> bool:
        """Push a status update; text None clears it."""
        target = self.status_target(identity)
        if target is None:
            return False
        return self._post({
            "type": "status",
            "to": target,
            "from": self.from_id,
            "text": text,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })
