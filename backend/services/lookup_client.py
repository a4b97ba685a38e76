import json
import re
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

from pydantic import ValidationError

from backend import config
from backend.services.errors import InvalidResponse
from backend.services.gemini_client import GeminiClient, extract_text
from backend.services.schemas import WORD_DEFINITION_SCHEMA, LookupMode, WordDefinition
from backend.utils.log_setup import get_logger

logger = get_logger("lookup")

# -------------------------------------------------------
# PROMPTS
# -------------------------------------------------------
EN_PROMPT = (
    "You are an elite English grammar and vocabulary mentor. "
    "The user provides an ENGLISH word or phrase.\n"
    "1. Analyze the word's primary meaning, grammatical properties, and core usage patterns.\n"
    "2. Provide natural, context-aware Chinese translations.\n"
    "3. Provide the result in the requested JSON format.\n"
    '4. The "grammarNotes" MUST be a detailed explanation in Chinese focusing on '
    "sentence structure, tense usage, and natural collocations."
)

CN_PROMPT = (
    "You are an elite bilingual English-Chinese linguistic mentor. "
    "The user provides a CHINESE word or phrase.\n"
    "1. Identify the most accurate, natural, and contemporary English translation.\n"
    "2. Perform a deep linguistic and grammatical analysis on the chosen English expression.\n"
    "3. Provide the result in the requested JSON format.\n"
    '4. The "grammarNotes" MUST be a detailed pedagogical explanation in Chinese. '
    "Explain why and how to use the word, common pitfalls for Chinese learners, "
    "and cultural nuances. Speak directly to the student."
)

PROMPTS = {
    LookupMode.EN: EN_PROMPT,
    LookupMode.CN: CN_PROMPT,
}

FENCE_OPEN_RE = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\n?")
FENCE_CLOSE_RE = re.compile(r"\n?```\s*$")


def build_prompt(query: str, mode: LookupMode) -> str:
    return f'{PROMPTS[LookupMode(mode)]}\n\nUser Input: "{query}"'


def strip_code_fence(text: str) -> str:
    """Remove a leading ```lang line and a trailing ``` marker, if present."""
    text = text.strip()
    if text.startswith("```"):
        text = FENCE_OPEN_RE.sub("", text, count=1)
        text = FENCE_CLOSE_RE.sub("", text, count=1)
    return text.strip()


def parse_word_definition(text: Optional[str]) -> WordDefinition:
    """Strict parse of the model reply; all-or-nothing."""
    if not text or not text.strip():
        raise InvalidResponse()

    try:
        data = json.loads(strip_code_fence(text))
        return WordDefinition.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning("Failed to parse lookup response: %s", e)
        raise InvalidResponse() from e


def _require_query(query: str) -> str:
    trimmed = (query or "").strip()
    if not trimmed:
        raise ValueError("query must not be blank")
    return trimmed


class LookupClient(ABC):
    """Turns a query + mode into a WordDefinition."""

    def lookup(self, query: str, mode: LookupMode = LookupMode.EN) -> WordDefinition:
        return self._lookup(_require_query(query), LookupMode(mode))

    @abstractmethod
    def _lookup(self, query: str, mode: LookupMode) -> WordDefinition:
        ...


class GeminiLookupClient(LookupClient):
    def __init__(self, client: Optional[GeminiClient] = None, model: str = config.LOOKUP_MODEL):
        self.client = client or GeminiClient()
        self.model = model

    def _lookup(self, query, mode):
        logger.info("Looking up %r in %s mode", query, mode.value)
        body = self.client.generate(
            self.model,
            build_prompt(query, mode),
            {
                "responseMimeType": "application/json",
                "responseSchema": WORD_DEFINITION_SCHEMA,
            },
        )
        return parse_word_definition(extract_text(body))


class FixtureLookupClient(LookupClient):
    """Canned results keyed by (mode, query). Used by tests and offline demos."""

    def __init__(self, fixtures: Optional[Dict[Tuple[LookupMode, str], WordDefinition]] = None):
        self.fixtures = dict(fixtures or {})
        self.calls = []

    def add(self, query: str, mode: LookupMode, definition):
        if isinstance(definition, dict):
            definition = WordDefinition.model_validate(definition)
        self.fixtures[(LookupMode(mode), query)] = definition

    def _lookup(self, query, mode):
        self.calls.append((query, mode))
        try:
            return self.fixtures[(mode, query)].model_copy(deep=True)
        except KeyError:
            raise InvalidResponse() from None
