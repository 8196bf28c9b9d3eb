"""
config.py

Loads all environment variables from .env using python-dotenv.
Exposes them as typed constants grouped by section.
Nothing here is required at import time; engine and channel credentials are
validated on demand by the helpers at the bottom of the module.
Part of Lantern - Conversational Turn Dispatcher.
"""

import os
import sys
from pathlib import Path
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Load .env file from project root
# ---------------------------------------------------------------------------
_ENV_PATH = Path(__file__).resolve().parent / ".env"
load_dotenv(_ENV_PATH)


def _get_optional(key: str, default: str = "") -> str:
    """
    Retrieve an optional environment variable with a default.

    Args:
        key: The environment variable name.
        default: Fallback value if not set.

    Returns:
        The value string or default.
    """
    return os.getenv(key, default).strip() or default


def _get_bool(key: str, default: bool = False) -> bool:
    """
    Retrieve an environment variable as a boolean.

    Args:
        key: The environment variable name.
        default: Fallback if not set.

    Returns:
        True if the value is "true"/"1"/"yes" (case-insensitive), else False.
    """
    raw = os.getenv(key, "").strip().lower()
    if not raw:
        return default
    return raw in ("true", "1", "yes")


def _get_int(key: str, default: int = 0) -> int:
    """
    Retrieve an environment variable as an integer.

    Args:
        key: The environment variable name.
        default: Fallback if not set or not a valid int.

    Returns:
        The integer value.
    """
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# ===========================================================================
# Section 1 - LLM Keys & Engines
# ===========================================================================

ANTHROPIC_API_KEY: str = _get_optional("ANTHROPIC_API_KEY")

OLLAMA_BASE_URL: str = _get_optional("OLLAMA_BASE_URL", "http://localhost:11434")
OLLAMA_MODEL: str = _get_optional("OLLAMA_MODEL", "llama3.2")

# Which provider serves each task: "anthropic" | "local"
CHAT_ENGINE: str = _get_optional("CHAT_ENGINE", "anthropic")
CLASSIFIER_ENGINE: str = _get_optional("CLASSIFIER_ENGINE", "anthropic")
NARRATOR_ENGINE: str = _get_optional("NARRATOR_ENGINE", "anthropic")

CHAT_MODEL: str = _get_optional("CHAT_MODEL", "claude-sonnet-4-20250514")
CLASSIFIER_MODEL: str = _get_optional("CLASSIFIER_MODEL", "claude-3-5-haiku-latest")
NARRATOR_MODEL: str = _get_optional("NARRATOR_MODEL", "claude-3-5-haiku-latest")

# ===========================================================================
# Section 2 - Database
# ===========================================================================

DATABASE_URL: str = _get_optional("DATABASE_URL", "sqlite:///lantern.db")

# ===========================================================================
# Section 3 - Delivery
# ===========================================================================

TELEGRAM_BOT_TOKEN: str = _get_optional("TELEGRAM_BOT_TOKEN")
WEB_PUSH_URL: str = _get_optional("WEB_PUSH_URL")
BOT_USER_ID: str = _get_optional("BOT_USER_ID", "bot:lantern")

# ===========================================================================
# Section 4 - Turn Handling
# ===========================================================================

DEFAULT_PERSONA: str = _get_optional("DEFAULT_PERSONA", "adaptive")
NARRATION_MODE: str = _get_optional("NARRATION_MODE", "background")  # background | inline
NARRATION_ENABLED: bool = _get_bool("NARRATION_ENABLED", default=True)
WELCOME_ENABLED: bool = _get_bool("WELCOME_ENABLED", default=True)
TURN_WORKERS: int = _get_int("TURN_WORKERS", 8)
TRIGGER_POLL_SECONDS: int = _get_int("TRIGGER_POLL_SECONDS", 60)

# ===========================================================================
# Section 5 - General Config
# ===========================================================================

LOG_LEVEL: str = _get_optional("LOG_LEVEL", "INFO")

# ===========================================================================
# Project paths (derived, not from .env unless overridden)
# ===========================================================================

PROJECT_ROOT: Path = Path(__file__).resolve().parent
# Writable state (logs, trigger schedule) lives under DATA_DIR, never PROJECT_ROOT
DATA_DIR: Path = Path(_get_optional("LANTERN_HOME", str(Path.cwd())))
LOGS_DIR: Path = Path(_get_optional("LOGS_DIR", str(DATA_DIR / "logs")))
PERSONAS_FILE: Path = Path(
    _get_optional("PERSONAS_FILE", str(PROJECT_ROOT / "core" / "personas.yaml"))
)
BUNDLED_TRIGGERS_FILE: Path = PROJECT_ROOT / "background" / "triggers.yaml"
TRIGGERS_FILE: Path = Path(_get_optional("TRIGGERS_FILE", str(DATA_DIR / "triggers.yaml")))

# Ensure logs directory exists
LOGS_DIR.mkdir(parents=True, exist_ok=True)


# ===========================================================================
# Validation helpers
# ===========================================================================

def validate_required_for_engine(engine: str) -> None:
    """
    Validate that the required credentials exist for a given engine.
    Call this before using a specific engine, not at import time,
    because deployments may only need a subset of engines.

    Args:
        engine: Engine name - "anthropic" or "local".

    Raises:
        SystemExit: If required credentials are missing.

    Example:
        validate_required_for_engine("anthropic")
    """
    checks: dict[str, list[tuple[str, str]]] = {
        "anthropic": [
            (ANTHROPIC_API_KEY, "ANTHROPIC_API_KEY"),
        ],
        "local": [],  # Ollama needs no credentials
    }

    for value, name in checks.get(engine, []):
        if not value:
            print(
                f"[Lantern Config Error] Engine '{engine}' requires '{name}' but it is missing.\n"
                f"  -> Add it to your .env file. See .env.example for reference.",
                file=sys.stderr,
            )
            raise SystemExit(1)


def validate_narration_mode() -> None:
    """
    Validate NARRATION_MODE.

    Raises:
        SystemExit: If the mode is neither "background" nor "inline".
    """
    if NARRATION_MODE not in ("background", "inline"):
        print(
            f"[Lantern Config Error] NARRATION_MODE must be 'background' or 'inline', "
            f"got '{NARRATION_MODE}'.",
            file=sys.stderr,
        )
        raise SystemExit(1)


def as_dict() -> dict[str, str | int | bool]:
    """
    Return all configuration values as a flat dictionary.
    Useful for debugging; does NOT include sensitive tokens.

    Returns:
        A dict of all config keys and their current values.

    Example:
        cfg = as_dict()
    """
    return {
        # LLM
        "ANTHROPIC_API_KEY": "***set***" if ANTHROPIC_API_KEY else "",
        "OLLAMA_BASE_URL": OLLAMA_BASE_URL,
        "OLLAMA_MODEL": OLLAMA_MODEL,
        "CHAT_ENGINE": CHAT_ENGINE,
        "CLASSIFIER_ENGINE": CLASSIFIER_ENGINE,
        "NARRATOR_ENGINE": NARRATOR_ENGINE,
        "CHAT_MODEL": CHAT_MODEL,
        "CLASSIFIER_MODEL": CLASSIFIER_MODEL,
        "NARRATOR_MODEL": NARRATOR_MODEL,
        # Database
        "DATABASE_URL": DATABASE_URL,
        # Delivery
        "TELEGRAM_BOT_TOKEN": "***set***" if TELEGRAM_BOT_TOKEN else "",
        "WEB_PUSH_URL": WEB_PUSH_URL or "(not set)",
        "BOT_USER_ID": BOT_USER_ID,
        # Turn handling
        "DEFAULT_PERSONA": DEFAULT_PERSONA,
        "NARRATION_MODE": NARRATION_MODE,
        "NARRATION_ENABLED": NARRATION_ENABLED,
        "WELCOME_ENABLED": WELCOME_ENABLED,
        "TURN_WORKERS": TURN_WORKERS,
        "TRIGGER_POLL_SECONDS": TRIGGER_POLL_SECONDS,
        # General
        "LOG_LEVEL": LOG_LEVEL,
        "DATA_DIR": str(DATA_DIR),
        "LOGS_DIR": str(LOGS_DIR),
        "PERSONAS_FILE": str(PERSONAS_FILE),
        "TRIGGERS_FILE": str(TRIGGERS_FILE),
    }
