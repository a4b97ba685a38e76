import json
import os
import tempfile
import time
from pathlib import Path
from typing import Callable, List, Optional

from pydantic import ValidationError

from backend import config
from backend.services.schemas import HistoryItem
from backend.utils.log_setup import get_logger

logger = get_logger("history")


def _now_ms() -> int:
    return int(time.time() * 1000)


class LocalStorage:
    """Tiny key/value store: one JSON object in one file, string values."""

    def __init__(self, path=config.STORAGE_PATH):
        self.path = Path(path)

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable storage file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def get_item(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise


class SessionHistoryStore:
    """Most-recent-first, one entry per word, capped, persisted on every write."""

    def __init__(
        self,
        storage: LocalStorage,
        key: str = config.HISTORY_KEY,
        limit: int = config.HISTORY_LIMIT,
        clock: Callable[[], int] = _now_ms,
    ):
        self.storage = storage
        self.key = key
        self.limit = limit
        self.clock = clock
        self._items: List[HistoryItem] = []

    @property
    def items(self) -> List[HistoryItem]:
        return list(self._items)

    def load(self) -> List[HistoryItem]:
        raw = self.storage.get_item(self.key)
        if raw is None:
            self._items = []
            return self.items

        try:
            entries = json.loads(raw)
            self._items = [HistoryItem.model_validate(entry) for entry in entries][: self.limit]
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            logger.warning("Stored history is unreadable, starting empty: %s", e)
            self._items = []

        logger.info("Loaded %d history entries", len(self._items))
        return self.items

    def record(self, word: str) -> List[HistoryItem]:
        item = HistoryItem(word=word, timestamp=self.clock())
        updated = [item] + [h for h in self._items if h.word != word]
        self._items = updated[: self.limit]
        self._persist()
        return self.items

    def _persist(self):
        serialized = json.dumps([h.to_wire() for h in self._items], ensure_ascii=False)
        try:
            self.storage.set_item(self.key, serialized)
        except OSError as e:
            # The in-memory list stays authoritative for this run
            logger.error("Could not save history to %s: %s", self.storage.path, e)
