"""
classification.py

LLM-backed classification engine for the conversational short-circuit.
Asks a small model whether the user's message is purely conversational and,
if so, for a short reply; the answer must be a JSON object.
Part of Lantern - Conversational Turn Dispatcher.
"""

import json
import logging
import re
from typing import Any, Optional

import config
from core.errors import EngineError
from core.interfaces import ClassificationResult
from core.personas import PersonaCatalog
from engines.base import BaseEngine
from engines import router

_log = logging.getLogger("lantern.engines.classification")
_handler = logging.FileHandler(config.LOGS_DIR / "engines.log")
_handler.setFormatter(logging.Formatter("%(asctime)s  %(levelname)-8s  %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))

_CLASSIFIER_PROMPT = """Decide whether the user's latest message is purely conversational:
an acknowledgement, thanks, greeting, farewell or emotional reaction that needs
no information, explanation or lookup to answer.

RECENT CONVERSATION:
{context}

LATEST USER MESSAGE:
{message}

If it is conversational, write a short, natural reply in this voice: {voice}
{name_hint}
Answer with a single JSON object and nothing else:
{{"conversational": true|false, "response": "<reply or null>"}}"""

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def parse_classification(raw: str) -> ClassificationResult:
    """
    Parse the model's JSON answer.

    Args:
        raw: Model output, possibly wrapped in prose or code fences.

    Returns:
        The ClassificationResult.

    Raises:
        EngineError: If no well-formed object can be extracted.

    Example:
        parse_classification('{"conversational": true, "response": "Hi!"}')
    """
    match = _JSON_OBJECT.search(raw or "")
    if not match:
        raise EngineError(f"Classifier returned no JSON object: {(raw or '')[:120]!r}")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise EngineError(f"Classifier returned malformed JSON: {exc}") from exc

    conversational = data.get("conversational") if isinstance(data, dict) else None
    if not isinstance(conversational, bool):
        raise EngineError(f"Classifier JSON lacks boolean 'conversational': {data!r}")
    response = data.get("response")
    if response is not None and not isinstance(response, str):
        raise EngineError(f"Classifier 'response' must be a string or null: {response!r}")
    return ClassificationResult(conversational=conversational, response=response or None)


class LlmClassificationEngine:
    """
    Classification engine used by the TurnClassifier.

    Example:
        engine = LlmClassificationEngine()
        result = engine.classify({"userMessage": "thanks!", "conversationContext": "..."})
    """

    def __init__(
        self, raw_engine: Optional[BaseEngine] = None, personas: Optional[PersonaCatalog] = None
    ) -> None:
        self._raw_engine = raw_engine
        self.personas = personas or PersonaCatalog()

    def classify(self, model: dict[str, Any]) -> ClassificationResult:
        """
        Classify the message in *model*.

        Args:
            model: Template model plus "conversationContext" and "userMessage".

        Returns:
            The parsed ClassificationResult.

        Raises:
            EngineError: On provider failure or malformed output.
        """
        user = model.get("user") or {}
        name = user.get("displayName")
        name_hint = (
            f"You may address the user as {name}." if name and user.get("greetByName") else ""
        )
        prompt = _CLASSIFIER_PROMPT.format(
            context=model.get("conversationContext", ""),
            message=model.get("userMessage", ""),
            voice=self.personas.voice(model.get("persona")),
            name_hint=name_hint,
        )
        engine = self._raw_engine or router.route("classifier")
        return parse_classification(engine.generate(prompt, []))
