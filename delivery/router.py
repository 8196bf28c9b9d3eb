"""
router.py

Picks the delivery channel for an identity from its origin: platform-linked
identities go to Telegram, web identities to the web push endpoint.
Part of Lantern - Conversational Turn Dispatcher.
"""

import logging
from typing import Optional

import config
from core.conversation import Message
from core.identity import Identity, PlatformLinked
from core.interfaces import Channel
from delivery.messenger import TelegramChannel
from delivery.web_push import WebPushChannel

_log = logging.getLogger("lantern.delivery")
_handler = logging.FileHandler(config.LOGS_DIR / "delivery.log")
_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-8s | %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))


class ChannelRouter:
    """
    Channel that dispatches to the right concrete channel per identity.

    Example:
        router = ChannelRouter()
        router.send(identity, reply)
    """

    def __init__(self, platform: Optional[Channel] = None, web: Optional[Channel] = None) -> None:
        self.platform = platform or TelegramChannel()
        self.web = web or WebPushChannel()

    def channel_for(self, identity: Identity) -> Channel:
        if isinstance(identity.origin, PlatformLinked):
            return self.platform
        return self.web

    def status_target(self, identity: Identity) -> Optional[str]:
        return self.channel_for(identity).status_target(identity)

    def send(self, identity: Identity, message: Message) -> bool:
        return self.channel_for(identity).send(identity, message)

    def send_status(self, identity: Identity, text: Optional[str]) -> bool:
        return self.channel_for(identity).send_status(identity, text)
