from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class LookupMode(str, Enum):
    EN = "EN"  # English input, analyze it
    CN = "CN"  # Chinese input, find the English equivalent and analyze that

    @property
    def recognition_locale(self) -> str:
        return "en-US" if self is LookupMode.EN else "zh-CN"

    @property
    def recognition_language(self) -> str:
        """Two-letter code the Whisper recognizer expects."""
        return self.recognition_locale.split("-")[0]


class CamelModel(BaseModel):
    # snake_case in Python, camelCase on the wire and on disk
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class Example(CamelModel):
    en: str = Field(..., description="Natural English example sentence")
    cn: str = Field(..., description="Accurate Chinese translation")


# This maps 1:1 to the result card in the UI
class WordDefinition(CamelModel):
    word: str = Field(..., description="The primary English word or phrase analyzed")
    phonetic: str = Field(..., description="IPA pronunciation guide")
    part_of_speech: str
    definition: str = Field(..., description="Professional English definition")
    chinese_translation: str = Field(..., description="The most fitting Chinese translation")
    examples: List[Example]
    synonyms: List[str] = Field(default_factory=list)
    antonyms: List[str] = Field(default_factory=list)
    grammar_notes: str = Field(..., description="Pedagogical explanation written in Chinese")


class HistoryItem(CamelModel):
    word: str
    timestamp: int = Field(..., description="Creation time in ms since epoch")


class ExternalSource(CamelModel):
    name: str
    url_prefix: str
    icon: str


# Declared to Gemini as `responseSchema`. Gemini accepts an OpenAPI subset,
# so this is spelled out instead of derived from WordDefinition.model_json_schema().
WORD_DEFINITION_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "word": {"type": "STRING", "description": "The primary English word or phrase analyzed"},
        "phonetic": {"type": "STRING", "description": "IPA pronunciation guide"},
        "partOfSpeech": {"type": "STRING"},
        "definition": {"type": "STRING", "description": "Professional English definition"},
        "chineseTranslation": {"type": "STRING", "description": "The most fitting Chinese translation"},
        "examples": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "en": {"type": "STRING", "description": "Natural English example sentence"},
                    "cn": {"type": "STRING", "description": "Accurate Chinese translation"},
                },
                "required": ["en", "cn"],
            },
        },
        "synonyms": {"type": "ARRAY", "items": {"type": "STRING"}},
        "antonyms": {"type": "ARRAY", "items": {"type": "STRING"}},
        "grammarNotes": {"type": "STRING", "description": "Deep pedagogical explanation written in friendly Chinese"},
    },
    "required": [
        "word",
        "phonetic",
        "partOfSpeech",
        "definition",
        "chineseTranslation",
        "examples",
        "grammarNotes",
    ],
}
