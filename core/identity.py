"""
identity.py

Identity records and the raw descriptors that name them at the system boundary.
An Identity's origin is a closed variant: exactly one of PlatformLinked,
WebAnonymous or WebRegistered. Code that branches on origin handles all
three and raises on anything else.
Part of Lantern - Conversational Turn Dispatcher.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

UNKNOWN_DISPLAY_NAME = "Unknown"
ANONYMOUS_ORIGIN_KEY = "anonymous"
ANONYMOUS_DISPLAY_NAME = "Friend"


class OriginKind:
    """Stored values of the origin_kind column."""

    PLATFORM = "platform"
    WEB_ANONYMOUS = "web_anonymous"
    WEB_REGISTERED = "web_registered"


# ===========================================================================
# Origins
# ===========================================================================

@dataclass(frozen=True)
class PlatformLinked:
    """Identity first seen through a chat platform bot (Telegram, Discord...)."""

    platform_id: str
    platform_username: str = ""
    is_bot: bool = False
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class WebAnonymous:
    """The shared identity used by all non-authenticated web sessions."""

    web_user_id: str


@dataclass(frozen=True)
class WebRegistered:
    """Identity backed by a registered web account."""

    web_user_id: str
    username: str = ""
    email: Optional[str] = None
    credential_ref: Optional[str] = None


Origin = Union[PlatformLinked, WebAnonymous, WebRegistered]


def origin_key(origin: Origin) -> tuple[str, str]:
    """
    Return the (origin_kind, origin_key) pair that uniquely names an origin.

    Args:
        origin: One of the three origin variants.

    Returns:
        Tuple of kind and key as stored in the identities table.

    Raises:
        TypeError: If origin is not a known variant.

    Example:
        origin_key(PlatformLinked("1234"))  # ("platform", "1234")
    """
    if isinstance(origin, PlatformLinked):
        return OriginKind.PLATFORM, origin.platform_id
    if isinstance(origin, WebAnonymous):
        return OriginKind.WEB_ANONYMOUS, ANONYMOUS_ORIGIN_KEY
    if isinstance(origin, WebRegistered):
        return OriginKind.WEB_REGISTERED, origin.web_user_id
    raise TypeError(f"Unknown origin variant: {origin!r}")


# ===========================================================================
# Identity
# ===========================================================================

@dataclass(frozen=True)
class Identity:
    """
    Canonical, stored identity of a user.

    Attributes:
        id: Opaque identifier, immutable once created.
        display_name: Name shown to the model; may be empty.
        persona: Persona name chosen by the user, or None for the default.
        custom_prompt: Free-form prompt override, or None.
        origin: Where this identity came from.
    """

    id: str
    display_name: str
    origin: Origin
    persona: Optional[str] = None
    custom_prompt: Optional[str] = None

    @property
    def display_label(self) -> str:
        """Display name for templates, or the "Unknown" sentinel when empty."""
        return self.display_name or UNKNOWN_DISPLAY_NAME

    @property
    def web_user_id(self) -> Optional[str]:
        """Web user id for web identities, None for platform identities."""
        if isinstance(self.origin, (WebAnonymous, WebRegistered)):
            return self.origin.web_user_id
        return None


# ===========================================================================
# Descriptors (raw references before resolution)
# ===========================================================================

@dataclass(frozen=True)
class PlatformDescriptor:
    """A user as presented by a chat platform update."""

    platform_id: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    is_bot: bool = False
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class KnownIdentityDescriptor:
    """Reference to an identity that already exists in the store."""

    identity_id: str


@dataclass(frozen=True)
class AnonymousWebDescriptor:
    """A non-authenticated web session."""


@dataclass(frozen=True)
class WebUserDescriptor:
    """An authenticated web session."""

    web_user_id: str
    display_name: str = ""
    username: str = ""
    email: Optional[str] = None
    credential_ref: Optional[str] = None


IdentityDescriptor = Union[
    PlatformDescriptor,
    KnownIdentityDescriptor,
    AnonymousWebDescriptor,
    WebUserDescriptor,
    Identity,
]
