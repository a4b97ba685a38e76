from typing import List
from urllib.parse import quote

from backend.services.schemas import ExternalSource

EXTERNAL_SOURCES = [
    ExternalSource(name="Merriam-Webster", url_prefix="https://www.merriam-webster.com/dictionary/", icon="fa-book-open"),
    ExternalSource(name="Oxford Learner's", url_prefix="https://www.oxfordlearnersdictionaries.com/definition/english/", icon="fa-graduation-cap"),
    ExternalSource(name="Cambridge Dictionary", url_prefix="https://dictionary.cambridge.org/dictionary/english/", icon="fa-language"),
    ExternalSource(name="Collins Dictionary", url_prefix="https://www.collinsdictionary.com/dictionary/english/", icon="fa-spell-check"),
    ExternalSource(name="Etymonline", url_prefix="https://www.etymonline.com/word/", icon="fa-history"),
]


def build_link(source: ExternalSource, word: str) -> str:
    return source.url_prefix + quote((word or "").strip(), safe="")


def build_links(word: str) -> List[dict]:
    return [
        {"name": s.name, "icon": s.icon, "url": build_link(s, word)}
        for s in EXTERNAL_SOURCES
    ]
