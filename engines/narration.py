"""
narration.py

Converts markdown assistant replies into speech-friendly narration.

Routing:
- SIMPLE (short plain text): returned as-is, no LLM call
- COMPLEX (markdown without code): LLM rewrite into spoken prose
- COMPLEX_WITH_CODE (markdown with code fences): LLM rewrite that describes
  code instead of reading it out
Part of Lantern - Conversational Turn Dispatcher.
"""

import enum
import logging
import re
from typing import Optional

import config
from core.errors import EngineError
from core.personas import PersonaCatalog
from engines.base import BaseEngine
from engines import router

_log = logging.getLogger("lantern.engines.narration")
_handler = logging.FileHandler(config.LOGS_DIR / "engines.log")
_handler.setFormatter(logging.Formatter("%(asctime)s  %(levelname)-8s  %(message)s"))
_log.addHandler(_handler)
_log.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))

SIMPLE_MAX_LENGTH = 300
_CODE_FENCE = re.compile(r"```")
_MARKDOWN_INDICATORS = re.compile(
    r"(^#{1,6}\s|\*\*|\*|^-\s|^\d+\.\s|^>\s|\[.*]\(.*\))", re.MULTILINE
)


class NarrationCategory(str, enum.Enum):
    SIMPLE = "simple"
    COMPLEX = "complex"
    COMPLEX_WITH_CODE = "complex_with_code"


_COMPLEX_PROMPT = """Rewrite the following assistant message so it can be read aloud by a
text-to-speech voice. Remove all markdown. Turn headings and lists into flowing
spoken sentences. Keep the meaning and the most useful details.

Aim for about {target_words} words (the original has {word_count}).
{voice_line}
MESSAGE:
{content}

Return only the narration text."""

_CODE_PROMPT = """Rewrite the following assistant message so it can be read aloud by a
text-to-speech voice. Remove all markdown. Never read code aloud symbol by
symbol: describe what each code block does and what the listener should do
with it, then continue with the surrounding explanation.

Aim for about {target_words} words (the original has {word_count}).
{voice_line}
MESSAGE:
{content}

Return only the narration text."""


def categorize(content: str) -> NarrationCategory:
    """
    Pick the narration strategy for *content*. Pure code, no LLM call.

    Example:
        categorize("Sure thing!")  # NarrationCategory.SIMPLE
    """
    if _CODE_FENCE.search(content):
        return NarrationCategory.COMPLEX_WITH_CODE
    if len(content) <= SIMPLE_MAX_LENGTH and not _MARKDOWN_INDICATORS.search(content):
        return NarrationCategory.SIMPLE
    return NarrationCategory.COMPLEX


def target_words(word_count: int) -> int:
    """Length target for the narration given the source word count."""
    if word_count <= 350:
        return word_count
    if word_count <= 700:
        return 180
    if word_count <= 1200:
        return 250
    return 300


class LlmNarrationEngine:
    """
    Narration engine used by the Narrator.

    Example:
        engine = LlmNarrationEngine()
        spoken = engine.narrate("## Steps\\n1. Install\\n2. Run", "jesse")
    """

    def __init__(
        self, raw_engine: Optional[BaseEngine] = None, personas: Optional[PersonaCatalog] = None
    ) -> None:
        self._raw_engine = raw_engine
        self.personas = personas or PersonaCatalog()

    def narrate(self, text: str, persona: Optional[str]) -> str:
        """
        Produce speech-friendly text for *text*.

        Args:
            text: Assistant reply, possibly markdown.
            persona: Persona whose voice the narration should carry.

        Returns:
            The narration text.

        Raises:
            EngineError: If the LLM fails or returns nothing.
        """
        category = categorize(text)
        if category == NarrationCategory.SIMPLE:
            _log.debug("NARRATE SIMPLE | %d chars passed through", len(text))
            return text

        word_count = len(text.split())
        voice = self.personas.voice(persona) if persona else ""
        template = _CODE_PROMPT if category == NarrationCategory.COMPLEX_WITH_CODE else _COMPLEX_PROMPT
        prompt = template.format(
            target_words=target_words(word_count),
            word_count=word_count,
            voice_line=f"Speak in this voice: {voice}\n" if voice else "",
            content=text,
        )

        engine = self._raw_engine or router.route("narrator")
        narration = engine.generate(prompt, []).strip()
        if not narration:
            raise EngineError("Narration engine returned empty output")
        _log.info(
            "NARRATE %s | persona=%s | words=%d -> %d",
            category.name, persona, word_count, len(narration.split()),
        )
        return narration
