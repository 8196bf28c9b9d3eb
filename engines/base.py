"""
base.py

Abstract base class that all raw LLM engines must implement.
Defines the standard interface for generating responses and health checks
across providers. Engines raise EngineError on any failure; they never
return error text as if it were a reply.
Part of Lantern - Conversational Turn Dispatcher.
"""

from abc import ABC, abstractmethod


class BaseEngine(ABC):
    """
    Abstract base class for all LLM engines.

    Every engine (Claude, Ollama) must subclass this and implement all
    abstract methods so the task-level engines can use any of them.

    Example:
        class MyEngine(BaseEngine):
            def generate(self, prompt, context):
                return "response"
            def is_available(self):
                return True
            def get_name(self):
                return "mine"
    """

    @abstractmethod
    def generate(self, prompt: str, context: list[dict]) -> str:
        """
        Generate a complete response from the LLM.

        Args:
            prompt: The final user-role message or instruction.
            context: A list of prior message dicts (role, content).

        Returns:
            The full response string from the LLM.

        Raises:
            EngineError: On provider errors, timeouts or empty output.

        Example:
            response = engine.generate("Explain OAuth2", [{"role": "system", "content": "..."}])
        """
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """
        Check if this engine is currently configured and reachable.

        Returns:
            True if the engine can accept requests, False otherwise.
        """
        ...

    @abstractmethod
    def get_name(self) -> str:
        """
        Return the name identifier for this engine.

        Returns:
            A string name like "anthropic" or "local".
        """
        ...

    def format_messages(self, prompt: str, context: list[dict]) -> list[dict]:
        """
        Convert context into standard chat message format and append the prompt.

        Args:
            prompt: The final user-role message. Skipped when empty.
            context: A list of prior message dicts (role, content).

        Returns:
            A list of {"role", "content"} dicts.

        Example:
            messages = engine.format_messages(
                "What is OAuth?",
                [{"role": "system", "content": "You are helpful."}]
            )
            # [{"role": "system", "content": "You are helpful."},
            #  {"role": "user", "content": "What is OAuth?"}]
        """
        messages = []
        for msg in context:
            role = msg.get("role", "user")
            content = msg.get("content", "")
            if role in ("system", "user", "assistant") and content:
                messages.append({"role": role, "content": content})
        if prompt:
            messages.append({"role": "user", "content": prompt})
        return messages
