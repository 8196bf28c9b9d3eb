"""
local_engine.py

Ollama local model engine implementation.
Runs entirely on localhost; no API keys required.
Connects to the Ollama service at OLLAMA_BASE_URL.
Part of Lantern - Conversational Turn Dispatcher.
"""

import logging

import requests

import config
from core.errors import EngineError
from engines.base import BaseEngine

_log = logging.getLogger("lantern.engines.local")
_handler = logging.FileHandler(config.LOGS_DIR / "engines.log")
_handler.setFormatter(logging.Formatter("%(asctime)s  %(levelname)-8s  %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))


class LocalEngine(BaseEngine):
    """
    LLM engine for Ollama local models.
    Best suited for: classification and narration, offline use.
    """

    def __init__(
        self, model: str | None = None, base_url: str | None = None, timeout: int = 120
    ) -> None:
        """
        Initialize the local Ollama engine.

        Args:
            model: The Ollama model to use. Defaults to config.OLLAMA_MODEL.
            base_url: The Ollama API base URL. Defaults to config.OLLAMA_BASE_URL.
            timeout: Request timeout in seconds.
        """
        self.model = model or config.OLLAMA_MODEL
        self.base_url = base_url or config.OLLAMA_BASE_URL
        self.timeout = timeout

    def get_name(self) -> str:
        """Return the engine name identifier."""
        return "local"

    def generate(self, prompt: str, context: list[dict]) -> str:
        """
        Generate a complete response from the local Ollama model.

        Args:
            prompt: The final user-role message.
            context: A list of prior message dicts (role, content).

        Returns:
            The full response string from the local model.

        Raises:
            EngineError: On timeout, HTTP error or empty output.
        """
        messages = self.format_messages(prompt, context)

        try:
            response = requests.post(
                f"{self.base_url}/api/chat",
                json={
                    "model": self.model,
                    "messages": messages,
                    "stream": False,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout as exc:
            _log.error("Local generate timeout")
            raise EngineError("Local engine timeout") from exc
        except requests.exceptions.RequestException as exc:
            _log.error("Local generate error: %s", exc)
            raise EngineError(f"Ollama error: {exc}") from exc
        except ValueError as exc:
            _log.error("Local generate returned invalid JSON: %s", exc)
            raise EngineError(f"Ollama returned invalid JSON: {exc}") from exc

        result = data.get("message", {}).get("content", "")
        if not result:
            raise EngineError("Ollama returned an empty response")
        _log.info("Local generate: %d chars returned", len(result))
        return result

    def is_available(self) -> bool:
        """
        Check if Ollama is running.

        Returns:
            True if the local engine can accept requests, False otherwise.
        """
        try:
            response = requests.get(f"{self.base_url}/api/tags", timeout=5)
            return response.status_code == 200
        except requests.exceptions.RequestException as exc:
            _log.debug("Local engine unavailable: %s", exc)
            return False
