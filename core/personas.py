"""
personas.py

Persona catalog: named voice descriptions applied to generation and narration.
Loaded from core/personas.yaml (or PERSONAS_FILE); unknown persona names
fall back to the catalog default.
Part of Lantern - Conversational Turn Dispatcher.
"""

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

import config

_log = logging.getLogger("lantern.personas")
_handler = logging.FileHandler(config.LOGS_DIR / "engines.log")
_handler.setFormatter(logging.Formatter("%(asctime)s  %(levelname)-8s  %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))

DEFAULT_PERSONAS: dict[str, dict[str, Any]] = {
    "adaptive": {
        "voice": "Match the user's register. Be brief with casual messages "
        "and thorough with technical ones.",
    },
}


class PersonaCatalog:
    """
    Named personas and their voice descriptions.

    Example:
        catalog = PersonaCatalog()
        catalog.voice("pirate")
    """

    def __init__(self, path: Optional[Path] = None, default: Optional[str] = None):
        """
        Args:
            path: YAML file to load. Defaults to config.PERSONAS_FILE.
            default: Default persona name. Defaults to config.DEFAULT_PERSONA,
                then the file's own "default" key.
        """
        self.path = Path(path) if path else config.PERSONAS_FILE
        self._personas: dict[str, dict[str, Any]] = dict(DEFAULT_PERSONAS)
        file_default = self._load()
        self.default = default or config.DEFAULT_PERSONA or file_default or "adaptive"

    def _load(self) -> Optional[str]:
        if not self.path.exists():
            _log.warning("Personas file not found at %s, using built-in defaults", self.path)
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            _log.error("Failed to parse personas file %s: %s", self.path, exc)
            return None

        for name, entry in (data.get("personas") or {}).items():
            if isinstance(entry, dict):
                self._personas[str(name)] = entry
            elif isinstance(entry, str):
                self._personas[str(name)] = {"voice": entry}
        _log.info("Loaded %d personas from %s", len(self._personas), self.path)
        return data.get("default")

    def names(self) -> list[str]:
        return sorted(self._personas)

    def voice(self, name: Optional[str]) -> str:
        """
        Return the voice description for *name*, falling back to the default.

        Args:
            name: Persona name, or None.

        Returns:
            The voice text (may be empty if neither persona is defined).
        """
        entry = self._personas.get(name or "") or self._personas.get(self.default) or {}
        return str(entry.get("voice", "")).strip()
