"""Per-kind reading storage with an optional JSON snapshot on disk."""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, FrozenSet, Generic, Optional, Type, TypeVar

from models.records import Reading, ReadingKey, reading_class_for
from settings import get_settings

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Reading)


class DuplicateReadingError(ValueError):
    """A reading with the same group, sensor and time is already stored."""

    def __init__(self, key: ReadingKey) -> None:
        super().__init__(
            f"Reading for group {key.group_id!r}, sensor {key.sensor_id!r} "
            f"at {key.time} already exists."
        )
        self.key = key


class ReadingPool(Generic[R]):
    """In-memory store of one sensor kind, keyed by reading identity.

    When ``persistence_path`` is set every accepted reading is flushed to a
    JSON file, which is read back on construction.
    """

    def __init__(
        self,
        reading_cls: Type[R],
        persistence_path: Optional[Path] = None,
    ) -> None:
        self.reading_cls = reading_cls
        self.persistence_path = persistence_path
        self._items: Dict[ReadingKey, R] = {}
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    @property
    def kind(self) -> str:
        return self.reading_cls.kind

    def add(self, reading: R) -> None:
        if not isinstance(reading, self.reading_cls):
            raise TypeError(
                f"{self.kind} pool cannot store {type(reading).__name__} readings."
            )
        with self._lock:
            if reading.key in self._items:
                raise DuplicateReadingError(reading.key)
            candidate = dict(self._items)
            candidate[reading.key] = reading
            self._persist(candidate)
            self._items = candidate

    def get(self, key: ReadingKey) -> Optional[R]:
        with self._lock:
            return self._items.get(key)

    def snapshot(self) -> FrozenSet[R]:
        with self._lock:
            return frozenset(self._items.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def _persist(self, items: Dict[ReadingKey, R]) -> None:
        if not self.persistence_path:
            return
        payload = [
            item.to_record()
            for item in sorted(items.values(), key=lambda reading: reading.key)
        ]
        self.persistence_path.write_text(json.dumps(payload, indent=2))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "[]"
            records = json.loads(raw)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(
                "Ignoring unreadable snapshot %s",
                self.persistence_path,
                extra={"kind": self.kind, "reason": str(exc)},
            )
            records = []

        if not isinstance(records, list):
            logger.warning(
                "Ignoring snapshot %s without a list of records",
                self.persistence_path,
                extra={"kind": self.kind, "reason": type(records).__name__},
            )
            return

        for record in records:
            try:
                reading = self.reading_cls.from_record(record)
            except (TypeError, KeyError, ValueError) as exc:
                logger.warning(
                    "Skipping malformed record in %s",
                    self.persistence_path,
                    extra={"kind": self.kind, "reason": repr(exc)},
                )
                continue
            self._items[reading.key] = reading


@lru_cache
def build_default_pool(kind: str, data_path: Optional[str] = None) -> ReadingPool:
    reading_cls = reading_class_for(kind)
    settings = get_settings()
    root = settings.data_path if data_path is None else data_path
    if root is None:
        logger.info("Running with non-persistent reading storage", extra={"kind": kind})
        return ReadingPool(reading_cls)
    return ReadingPool(reading_cls, persistence_path=Path(root) / f"{kind}.json")
