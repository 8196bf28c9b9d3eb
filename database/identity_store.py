"""
identity_store.py

SQLAlchemy-backed identity store.
Lookup by origin key or id, idempotent creation guarded by the unique
(origin_kind, origin_key) constraint, and explicit field updates.
Part of Lantern - Conversational Turn Dispatcher.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

import config
from core.errors import IdentityNotFoundError
from core.identity import (
    Identity,
    OriginKind,
    PlatformLinked,
    WebAnonymous,
    WebRegistered,
    origin_key,
)
from database.models import IdentityRecord, create_all_tables, get_session_factory

_log = logging.getLogger("lantern.identity_store")
_handler = logging.FileHandler(config.LOGS_DIR / "identity.log")
_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-8s | %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))

UPDATABLE_FIELDS = ("persona", "custom_prompt")


def _to_record(identity: Identity) -> IdentityRecord:
    kind, key = origin_key(identity.origin)
    record = IdentityRecord(
        id=identity.id,
        display_name=identity.display_name or "",
        persona=identity.persona,
        custom_prompt=identity.custom_prompt,
        origin_kind=kind,
        origin_key=key,
    )
    origin = identity.origin
    if isinstance(origin, PlatformLinked):
        record.platform_username = origin.platform_username
        record.is_bot = origin.is_bot
        record.avatar_url = origin.avatar_url
    elif isinstance(origin, WebAnonymous):
        record.web_user_id = origin.web_user_id
        record.web_username = "anonymous"
    elif isinstance(origin, WebRegistered):
        record.web_user_id = origin.web_user_id
        record.web_username = origin.username
        record.email = origin.email
        record.credential_ref = origin.credential_ref
    return record


def _to_identity(record: IdentityRecord) -> Identity:
    if record.origin_kind == OriginKind.PLATFORM:
        origin = PlatformLinked(
            platform_id=record.origin_key,
            platform_username=record.platform_username or "",
            is_bot=bool(record.is_bot),
            avatar_url=record.avatar_url,
        )
    elif record.origin_kind == OriginKind.WEB_ANONYMOUS:
        origin = WebAnonymous(web_user_id=record.web_user_id or "")
    elif record.origin_kind == OriginKind.WEB_REGISTERED:
        origin = WebRegistered(
            web_user_id=record.web_user_id or record.origin_key,
            username=record.web_username or "",
            email=record.email,
            credential_ref=record.credential_ref,
        )
    else:
        raise ValueError(f"Corrupt identity row {record.id}: origin_kind={record.origin_kind}")

    return Identity(
        id=record.id,
        display_name=record.display_name or "",
        origin=origin,
        persona=record.persona,
        custom_prompt=record.custom_prompt,
    )


class SqlIdentityStore:
    """
    Persistent identity store.

    Example:
        store = SqlIdentityStore("sqlite:///lantern.db")
        identity = store.find_by_origin_key("platform", "1234")
    """

    def __init__(self, url: Optional[str] = None, create_tables: bool = True) -> None:
        """
        Args:
            url: Database URL. Defaults to config.DATABASE_URL.
            create_tables: Create missing tables on construction.
        """
        self.url = url or config.DATABASE_URL
        if create_tables:
            create_all_tables(self.url)
        self._session_factory = get_session_factory(self.url)

    def find_by_origin_key(self, kind: str, key: str) -> Optional[Identity]:
        """
        Find the identity stored for an origin.

        Args:
            kind: Origin kind ("platform", "web_anonymous", "web_registered").
            key: Origin key within that kind.

        Returns:
            The Identity, or None if absent.
        """
        db = self._session_factory()
        try:
            stmt = (
                select(IdentityRecord)
                .where(IdentityRecord.origin_kind == kind, IdentityRecord.origin_key == key)
                .limit(1)
            )
            record = db.scalars(stmt).first()
            return _to_identity(record) if record else None
        finally:
            db.close()

    def find_by_id(self, identity_id: str) -> Optional[Identity]:
        db = self._session_factory()
        try:
            record = db.get(IdentityRecord, identity_id)
            return _to_identity(record) if record else None
        finally:
            db.close()

    def find_by_web_username(self, username: str) -> Optional[Identity]:
        db = self._session_factory()
        try:
            stmt = (
                select(IdentityRecord)
                .where(IdentityRecord.web_username == username)
                .where(IdentityRecord.origin_kind == OriginKind.WEB_REGISTERED)
                .limit(1)
            )
            record = db.scalars(stmt).first()
            return _to_identity(record) if record else None
        finally:
            db.close()

    def create_idempotent(self, seed: Identity) -> Identity:
        """
        Insert *seed*, or return the identity already stored for its origin.

        The unique origin constraint decides the winner when several workers
        create the same origin at once; losers roll back and look up once.

        Args:
            seed: Identity to create, with a freshly generated id.

        Returns:
            The stored Identity (the seed, or the one that won the race).

        Raises:
            IntegrityError: If the insert conflicted but no row is found for
                the origin (e.g. a primary key collision).
        """
        kind, key = origin_key(seed.origin)
        db = self._session_factory()
        try:
            db.add(_to_record(seed))
            db.commit()
            _log.info(
                "IDENTITY CREATED | id=%s | origin=%s:%s | name=%s",
                seed.id, kind, key, seed.display_name,
            )
            return seed
        except IntegrityError:
            db.rollback()
            _log.warning("IDENTITY CREATE RACE | origin=%s:%s | retrying lookup", kind, key)
            existing = self.find_by_origin_key(kind, key)
            if existing is None:
                raise
            return existing
        finally:
            db.close()

    def update_field(self, identity_id: str, field: str, value: Optional[str]) -> None:
        """
        Update one mutable field of an identity.

        Args:
            identity_id: The identity id.
            field: "persona" or "custom_prompt".
            value: New value, or None to clear it.

        Raises:
            ValueError: If field is not updatable.
            IdentityNotFoundError: If the id does not exist.

        Example:
            store.update_field(identity.id, "persona", "pirate")
        """
        if field not in UPDATABLE_FIELDS:
            raise ValueError(f"Field '{field}' is not updatable. Allowed: {UPDATABLE_FIELDS}")

        db = self._session_factory()
        try:
            record = db.get(IdentityRecord, identity_id)
            if record is None:
                raise IdentityNotFoundError(f"Identity not found: {identity_id}")
            setattr(record, field, value)
            db.commit()
            _log.info("IDENTITY UPDATED | id=%s | field=%s", identity_id, field)
        except IdentityNotFoundError:
            raise
        except Exception:
            db.rollback()
            _log.exception("IDENTITY UPDATE FAILED | id=%s | field=%s", identity_id, field)
            raise
        finally:
            db.close()

    def find_all(self) -> list[Identity]:
        db = self._session_factory()
        try:
            return [_to_identity(r) for r in db.scalars(select(IdentityRecord)).all()]
        finally:
            db.close()

    def delete_all(self) -> None:
        """Delete every identity. For tests only."""
        db = self._session_factory()
        try:
            db.execute(delete(IdentityRecord))
            db.commit()
            _log.warning("IDENTITY DELETE ALL")
        finally:
            db.close()
