"""
router.py

Routes each task type (chat, classifier, narrator) to a raw LLM engine.
The configured provider for the task is tried first, then the remaining
providers in priority order.
Part of Lantern - Conversational Turn Dispatcher.
"""

from __future__ import annotations

import logging
from typing import Optional

import config
from engines.base import BaseEngine
from engines.claude_engine import ClaudeEngine
from engines.local_engine import LocalEngine

_log = logging.getLogger("lantern.router")
_handler = logging.FileHandler(config.LOGS_DIR / "engines.log")
_handler.setFormatter(logging.Formatter("%(asctime)s  %(levelname)-8s  %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))

_ENGINE_INSTANCES: dict[tuple[str, str], BaseEngine] = {}

_PRIORITY_MAP: dict[str, list[str]] = {
    "chat": ["anthropic", "local"],
    "classifier": ["anthropic", "local"],
    "narrator": ["anthropic", "local"],
}


def _normalize_engine_name(name: str) -> str:
    """
    Normalize engine aliases to canonical provider keys.

    Args:
        name: Engine or provider name.

    Returns:
        Canonical engine key.
    """
    normalized = name.lower().strip()
    alias_map = {
        "claude": "anthropic",
        "ollama": "local",
    }
    return alias_map.get(normalized, normalized)


def _task_settings(task_type: str) -> tuple[str, str]:
    """Return (preferred provider, anthropic model) for a task type."""
    settings = {
        "chat": (config.CHAT_ENGINE, config.CHAT_MODEL),
        "classifier": (config.CLASSIFIER_ENGINE, config.CLASSIFIER_MODEL),
        "narrator": (config.NARRATOR_ENGINE, config.NARRATOR_MODEL),
    }
    return settings.get(task_type, settings["chat"])


def _get_engine_instance(provider: str, model: str) -> Optional[BaseEngine]:
    """
    Get or create an engine instance for a provider and model.

    Args:
        provider: Canonical provider key.
        model: Anthropic model name (ignored by the local engine).

    Returns:
        Engine instance, or None for an unknown provider.
    """
    key = (provider, model if provider == "anthropic" else "")
    if key in _ENGINE_INSTANCES:
        return _ENGINE_INSTANCES[key]

    if provider == "anthropic":
        instance: BaseEngine = ClaudeEngine(model=model)
    elif provider == "local":
        instance = LocalEngine()
    else:
        _log.error("Unknown engine/provider name: %s", provider)
        return None

    _ENGINE_INSTANCES[key] = instance
    return instance


def route(task_type: str) -> BaseEngine:
    """
    Route a task to the best available engine.

    Args:
        task_type: "chat", "classifier" or "narrator".

    Returns:
        Selected engine instance.

    Raises:
        RuntimeError: If no suitable engine is available.

    Example:
        engine = route("classifier")
    """
    normalized_task = task_type.lower().strip()
    preferred, model = _task_settings(normalized_task)
    preferred = _normalize_engine_name(preferred)

    priorities = [preferred] + [
        p for p in _PRIORITY_MAP.get(normalized_task, _PRIORITY_MAP["chat"]) if p != preferred
    ]

    for provider in priorities:
        engine = _get_engine_instance(provider, model)
        if engine and engine.is_available():
            _log.info("Routed task '%s' to engine '%s'", task_type, provider)
            return engine

    raise RuntimeError(
        f"No LLM engines are available for task type '{task_type}'. "
        "Set ANTHROPIC_API_KEY or run Ollama locally."
    )
