"""
Scan history and block list, persisted as two JSON documents in a key-value storage.
"""

import json
import logging
from typing import Dict, List, Optional, Protocol

from pydantic import TypeAdapter, ValidationError

from securescan.models import KeyValue
from securescan.schemas import ScanResult

logger = logging.getLogger(__name__)

HISTORY_KEY = "securescan_history"
BLOCKED_KEY = "securescan_blocked"
HISTORY_LIMIT = 50

_history_adapter = TypeAdapter(List[ScanResult])
_blocked_adapter = TypeAdapter(List[str])


class Storage(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryStorage:
    def __init__(self, data: Optional[Dict[str, str]] = None):
        self.data = dict(data or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value


class SQLStorage:
    """Stores each key as one row of the key_value table."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        with self._session_factory() as db:
            row = db.get(KeyValue, key)
            return row.value if row else None

    def set(self, key: str, value: str) -> None:
        with self._session_factory() as db:
            row = db.get(KeyValue, key)
            if row is None:
                db.add(KeyValue(key=key, value=value))
            else:
                row.value = value
            db.commit()


class ResultStore:
    def __init__(self, storage: Storage, limit: int = HISTORY_LIMIT):
        self.storage = storage
        self.limit = limit
        self._history: List[ScanResult] = []
        # dict keeps insertion order for a stable persisted array
        self._blocked: Dict[str, None] = {}

    @property
    def history(self) -> List[ScanResult]:
        return list(self._history)

    @property
    def blocked_urls(self) -> List[str]:
        return list(self._blocked)

    def load(self) -> None:
        """Rehydrate from storage. Missing or corrupt documents load as empty."""
        self._history = self._read(HISTORY_KEY, _history_adapter)[: self.limit]
        self._blocked = dict.fromkeys(self._read(BLOCKED_KEY, _blocked_adapter))

    def save(self) -> None:
        self._write(HISTORY_KEY, _history_adapter.dump_json(self._history, by_alias=True))
        self._write(BLOCKED_KEY, json.dumps(list(self._blocked)).encode())

    def record(self, result: ScanResult) -> None:
        self._history = [result, *self._history][: self.limit]
        self.save()

    def is_blocked(self, url: str) -> bool:
        return url in self._blocked

    def block(self, url: str) -> None:
        if url in self._blocked:
            return
        self._blocked[url] = None
        self.save()

    def find(self, result_id: str) -> Optional[ScanResult]:
        return next((r for r in self._history if r.id == result_id), None)

    def _read(self, key: str, adapter: TypeAdapter) -> list:
        try:
            raw = self.storage.get(key)
        except Exception as exc:
            logger.warning("Failed to read %s from storage: %s", key, exc)
            return []

        if not raw:
            return []

        try:
            return adapter.validate_json(raw)
        except ValidationError as exc:
            logger.warning("Discarding unreadable %s (%d errors)", key, exc.error_count())
            return []

    def _write(self, key: str, payload: bytes) -> None:
        try:
            self.storage.set(key, payload.decode("utf-8"))
        except Exception as exc:
            logger.warning("Failed to persist %s: %s", key, exc)
