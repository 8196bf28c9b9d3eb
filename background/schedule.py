"""
schedule.py

Time-based trigger definitions loaded from triggers.yaml.
Each entry fires at its hour:minute on its allowed weekdays, at most once
per 23 hours; last_fired is written back to the file.
Part of Lantern - Conversational Turn Dispatcher.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import yaml

import config
from background.triggers import Trigger
from core.identity import KnownIdentityDescriptor

_log = logging.getLogger("lantern.schedule")
_handler = logging.FileHandler(config.LOGS_DIR / "triggers.log")
_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-8s | %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))

DAY_NAMES = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]
MIN_HOURS_BETWEEN_FIRES = 23


def _parse_time(value: Any) -> Optional[datetime]:
    # Unquoted timestamps in YAML already load as (naive) datetime
    if not value:
        return None
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        # Naive times are read as UTC, the clock the daemon runs on
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class ScheduledTrigger:
    """
    A trigger definition.

    Attributes:
        id: Unique entry id.
        hour: Hour of day (0-23) in the schedule's clock.
        minute: Minute of hour.
        prompt: Prompt injected when the entry fires.
        days: Allowed weekdays ("mon".."sun"); empty means every day.
        on_behalf_of: Identity ids to act for; empty means the daemon's
            fallback identity.
        last_fired: When this entry last fired.
        enabled: Whether the entry is active.
    """

    id: str
    hour: int
    minute: int
    prompt: str
    days: list[str] = field(default_factory=list)
    on_behalf_of: list[str] = field(default_factory=list)
    last_fired: Optional[datetime] = None
    enabled: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dict for YAML serialization."""
        return {
            "id": self.id,
            "hour": self.hour,
            "minute": self.minute,
            "days": self.days,
            "prompt": self.prompt,
            "on_behalf_of": self.on_behalf_of,
            "last_fired": self.last_fired.isoformat() if self.last_fired else None,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScheduledTrigger":
        return cls(
            id=str(data["id"]),
            hour=int(data.get("hour", 0)),
            minute=int(data.get("minute", 0)),
            prompt=str(data.get("prompt", "")),
            days=[str(d).lower()[:3] for d in data.get("days") or []],
            on_behalf_of=[str(i) for i in data.get("on_behalf_of") or []],
            last_fired=_parse_time(data.get("last_fired")),
            enabled=bool(data.get("enabled", True)),
        )

    def to_trigger(self) -> Trigger:
        return Trigger(
            prompt=self.prompt,
            on_behalf_of=tuple(KnownIdentityDescriptor(i) for i in self.on_behalf_of),
        )

    def is_due(self, now: datetime) -> bool:
        """
        Check whether the entry fires at *now*.

        Args:
            now: Current time, in the same timezone as last_fired.

        Returns:
            True if enabled, on an allowed day, at hour:minute, and not
            fired within the last 23 hours.
        """
        if not self.enabled:
            return False
        if self.days and DAY_NAMES[now.weekday()] not in self.days:
            return False
        if now.hour != self.hour or now.minute != self.minute:
            return False
        if self.last_fired:
            hours_since = (now - self.last_fired).total_seconds() / 3600
            if hours_since < MIN_HOURS_BETWEEN_FIRES:
                return False
        return True


class TriggerSchedule:
    """
    The set of scheduled triggers in a YAML file.

    Example:
        schedule = TriggerSchedule()
        for entry in schedule.due(datetime.now(timezone.utc)):
            dispatcher.dispatch(conversation, entry.to_trigger(), fallback)
            schedule.mark_fired(entry.id)
    """

    def __init__(self, path: Optional[Path] = None, defaults_path: Optional[Path] = None):
        """
        Args:
            path: Path to the triggers file. Defaults to config.TRIGGERS_FILE.
            defaults_path: File read while *path* does not exist yet; fired
                times are always saved to *path*. Defaults to the bundled
                schedule when *path* is not given.
        """
        if path is None:
            path = config.TRIGGERS_FILE
            defaults_path = defaults_path or config.BUNDLED_TRIGGERS_FILE
        self.path = Path(path)
        self.defaults_path = Path(defaults_path) if defaults_path else None
        self._entries: list[ScheduledTrigger] = []
        self.load()

    @property
    def entries(self) -> list[ScheduledTrigger]:
        return list(self._entries)

    def load(self) -> list[ScheduledTrigger]:
        """(Re)load entries. A missing file falls back to defaults_path, else no entries."""
        source = self.path
        if not source.exists() and self.defaults_path is not None:
            source = self.defaults_path
        if not source.exists():
            _log.info("No triggers file at %s", self.path)
            self._entries = []
            return self.entries

        try:
            with open(source, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            self._entries = [ScheduledTrigger.from_dict(t) for t in data.get("triggers") or []]
        except (yaml.YAMLError, KeyError, TypeError, ValueError) as exc:
            _log.error("Failed to load triggers from %s: %s", source, exc)
            self._entries = []
            return self.entries

        _log.info("Loaded %d triggers from %s", len(self._entries), source)
        return self.entries

    def due(self, now: Optional[datetime] = None) -> list[ScheduledTrigger]:
        """Entries that fire at *now* (defaults to the current UTC time)."""
        now = now or datetime.now(timezone.utc)
        fired = [entry for entry in self._entries if entry.is_due(now)]
        for entry in fired:
            _log.info("TRIGGER DUE | id=%s", entry.id)
        return fired

    def mark_fired(self, trigger_id: str, now: Optional[datetime] = None) -> None:
        """
        Record that an entry fired and save the file.

        Args:
            trigger_id: The entry's id.
            now: Fire time. Defaults to the current UTC time.
        """
        now = now or datetime.now(timezone.utc)
        for entry in self._entries:
            if entry.id == trigger_id:
                entry.last_fired = now
                break
        else:
            _log.warning("TRIGGER MARK | unknown id=%s", trigger_id)
            return

        self._save()
        _log.info("TRIGGER MARKED FIRED | id=%s | timestamp=%s", trigger_id, now.isoformat())

    def _save(self) -> None:
        data = {"triggers": [e.to_dict() for e in self._entries]}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                yaml.dump(data, f, default_flow_style=False, sort_keys=False)
        except OSError as exc:
            _log.error("Failed to save triggers: %s", exc)
