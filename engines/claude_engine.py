"""
claude_engine.py

Anthropic Claude engine implementation using API key authentication.
Serves chat generation, classification and narration depending on the
model it is constructed with.
Part of Lantern - Conversational Turn Dispatcher.
"""

import logging
from typing import Optional

import config
from core.errors import EngineError
from engines.base import BaseEngine

_log = logging.getLogger("lantern.engines.claude")
_handler = logging.FileHandler(config.LOGS_DIR / "engines.log")
_handler.setFormatter(logging.Formatter("%(asctime)s  %(levelname)-8s  %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))


class ClaudeEngine(BaseEngine):
    """
    LLM engine for Anthropic Claude.
    Uses API key authentication (stored in .env as ANTHROPIC_API_KEY).
    """

    def __init__(
        self,
        model: Optional[str] = None,
        max_tokens: int = 4096,
        timeout: float = 60.0,
    ) -> None:
        """
        Initialize the Claude engine.

        Args:
            model: The Anthropic model to use. Defaults to config.CHAT_MODEL.
            max_tokens: Output token cap per call.
            timeout: Request timeout in seconds.
        """
        self.model = model or config.CHAT_MODEL
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._client = None

    def _get_client(self):
        """
        Lazily create the Anthropic client using API key.

        Returns:
            Anthropic client instance or None if unavailable.
        """
        if self._client is not None:
            return self._client

        api_key = config.ANTHROPIC_API_KEY
        if not api_key:
            _log.debug("Anthropic API key not configured")
            return None

        from anthropic import Anthropic

        self._client = Anthropic(api_key=api_key, timeout=self.timeout)
        _log.info("Anthropic client initialised for model %s", self.model)
        return self._client

    def get_name(self) -> str:
        """Return the engine name identifier."""
        return "anthropic"

    def generate(self, prompt: str, context: list[dict]) -> str:
        """
        Generate a complete response from Claude.

        System messages in *context* are merged into the system parameter.

        Args:
            prompt: The final user-role message.
            context: A list of prior message dicts (role, content).

        Returns:
            The full response string from Claude.

        Raises:
            EngineError: If the client is unavailable or the call fails.
        """
        client = self._get_client()
        if client is None:
            raise EngineError("Claude engine unavailable: no API key configured")

        messages = self.format_messages(prompt, context)

        system_parts = []
        filtered_messages = []
        for msg in messages:
            if msg["role"] == "system":
                system_parts.append(msg["content"])
            else:
                filtered_messages.append(msg)

        kwargs = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": filtered_messages,
        }
        if system_parts:
            kwargs["system"] = "\n\n".join(system_parts)

        try:
            response = client.messages.create(**kwargs)
        except Exception as exc:
            _log.error("Claude generate error: %s", exc)
            raise EngineError(f"Claude API error: {exc}") from exc

        result = "".join(
            block.text for block in (response.content or []) if getattr(block, "type", "") == "text"
        )
        if not result:
            raise EngineError("Claude returned an empty response")
        _log.info("Claude generate: model=%s %d chars returned", self.model, len(result))
        return result

    def is_available(self) -> bool:
        """
        Check if the Claude engine is configured.

        Returns:
            True if an API key is set.
        """
        return bool(config.ANTHROPIC_API_KEY)
