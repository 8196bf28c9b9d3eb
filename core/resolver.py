"""
resolver.py

Maps a raw identity descriptor to a canonical, up-to-date Identity,
creating one on first contact.
Duplicate creation under concurrency is prevented by the store's unique
origin constraint; the per-origin lock held here only saves redundant
inserts inside one process.
Part of Lantern - Conversational Turn Dispatcher.
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Callable, Optional

import config
from core.errors import IdentityUnresolvedError, UnsupportedDescriptorError
from core.identity import (
    ANONYMOUS_DISPLAY_NAME,
    ANONYMOUS_ORIGIN_KEY,
    AnonymousWebDescriptor,
    Identity,
    IdentityDescriptor,
    KnownIdentityDescriptor,
    OriginKind,
    PlatformDescriptor,
    PlatformLinked,
    WebAnonymous,
    WebRegistered,
    WebUserDescriptor,
)
from core.interfaces import IdentityStore

_log = logging.getLogger("lantern.resolver")
_handler = logging.FileHandler(config.LOGS_DIR / "identity.log")
_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-8s | %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))


LOCK_STRIPES = 64


def _new_id() -> str:
    return str(uuid.uuid4())


class IdentityResolver:
    """
    Resolves descriptors against an identity store.

    Example:
        resolver = IdentityResolver(SqlIdentityStore())
        identity = resolver.resolve(PlatformDescriptor("1234", username="ada"))
    """

    def __init__(self, store: IdentityStore) -> None:
        self.store = store
        # Fixed pool: one origin always maps to the same lock
        self._locks = [threading.Lock() for _ in range(LOCK_STRIPES)]
        self._created_listeners: list[Callable[[Identity], None]] = []

    def _lock_for(self, kind: str, key: str) -> threading.Lock:
        return self._locks[hash((kind, key)) % LOCK_STRIPES]

    def add_created_listener(self, listener: Callable[[Identity], None]) -> None:
        """Call *listener* with every identity this resolver creates."""
        self._created_listeners.append(listener)

    def _notify_created(self, identity: Identity) -> None:
        for listener in self._created_listeners:
            try:
                listener(identity)
            except Exception as exc:
                _log.error(
                    "CREATED LISTENER FAILED | identity=%s | %s: %s",
                    identity.id, type(exc).__name__, exc,
                )

    def resolve(self, descriptor: Optional[IdentityDescriptor]) -> Identity:
        """
        Resolve *descriptor* to a stored Identity.

        Args:
            descriptor: A PlatformDescriptor, KnownIdentityDescriptor,
                AnonymousWebDescriptor, WebUserDescriptor or Identity.

        Returns:
            The canonical Identity as currently stored.

        Raises:
            IdentityUnresolvedError: If descriptor is None, or names an id
                that is not in the store.
            UnsupportedDescriptorError: If descriptor is of an unknown type.
        """
        if descriptor is None:
            _log.warning("RESOLVE | descriptor is None: cannot create or fetch identity")
            raise IdentityUnresolvedError("No identity descriptor supplied")

        if isinstance(descriptor, PlatformDescriptor):
            return self._resolve_platform(descriptor)

        if isinstance(descriptor, (KnownIdentityDescriptor, Identity)):
            identity_id = (
                descriptor.identity_id
                if isinstance(descriptor, KnownIdentityDescriptor)
                else descriptor.id
            )
            return self._refetch(identity_id)

        if isinstance(descriptor, AnonymousWebDescriptor):
            return self.find_or_create_anonymous()

        if isinstance(descriptor, WebUserDescriptor):
            return self._resolve_web_user(descriptor)

        _log.error("RESOLVE | unsupported descriptor type %s: %r", type(descriptor).__name__, descriptor)
        raise UnsupportedDescriptorError(f"Unknown identity descriptor: {descriptor!r}")

    def _refetch(self, identity_id: str) -> Identity:
        # Snapshots from callers may predate persona/settings changes.
        identity = self.store.find_by_id(identity_id)
        if identity is None:
            _log.error("RESOLVE | missing identity id=%s", identity_id)
            raise IdentityUnresolvedError(f"Missing identity with id: {identity_id}")
        return identity

    def _find_or_create(self, kind: str, key: str, seed_factory) -> Identity:
        existing = self.store.find_by_origin_key(kind, key)
        if existing is not None:
            return existing

        with self._lock_for(kind, key):
            # Double-check after acquiring the lock
            existing = self.store.find_by_origin_key(kind, key)
            if existing is not None:
                return existing
            seed = seed_factory()
            created = self.store.create_idempotent(seed)

        if created.id != seed.id:
            # Another process inserted this origin first
            return created
        _log.info("RESOLVE | created identity id=%s origin=%s:%s", created.id, kind, key)
        self._notify_created(created)
        return created

    def _resolve_platform(self, descriptor: PlatformDescriptor) -> Identity:
        def seed() -> Identity:
            return Identity(
                id=_new_id(),
                display_name=descriptor.display_name or descriptor.username or "",
                origin=PlatformLinked(
                    platform_id=descriptor.platform_id,
                    platform_username=descriptor.username or "",
                    is_bot=descriptor.is_bot,
                    avatar_url=descriptor.avatar_url,
                ),
            )

        return self._find_or_create(OriginKind.PLATFORM, descriptor.platform_id, seed)

    def find_or_create_anonymous(self) -> Identity:
        """
        Return the single anonymous web identity, creating it if needed.

        Returns:
            The anonymous Identity (display name "Friend").
        """
        def seed() -> Identity:
            return Identity(
                id=_new_id(),
                display_name=ANONYMOUS_DISPLAY_NAME,
                origin=WebAnonymous(web_user_id=_new_id()),
            )

        return self._find_or_create(OriginKind.WEB_ANONYMOUS, ANONYMOUS_ORIGIN_KEY, seed)

    def _resolve_web_user(self, descriptor: WebUserDescriptor) -> Identity:
        def seed() -> Identity:
            return Identity(
                id=_new_id(),
                display_name=descriptor.display_name or descriptor.username or "",
                origin=WebRegistered(
                    web_user_id=descriptor.web_user_id,
                    username=descriptor.username,
                    email=descriptor.email,
                    credential_ref=descriptor.credential_ref,
                ),
            )

        return self._find_or_create(OriginKind.WEB_REGISTERED, descriptor.web_user_id, seed)

    def try_resolve(self, descriptor: Optional[IdentityDescriptor]) -> Optional[Identity]:
        """
        Resolve, logging and returning None when no identity can be established.

        UnsupportedDescriptorError still propagates.
        """
        try:
            return self.resolve(descriptor)
        except IdentityUnresolvedError as exc:
            _log.error("RESOLVE FAILED | %s", exc)
            return None
