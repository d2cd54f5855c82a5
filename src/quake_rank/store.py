"""Summary storage: per-date partitions plus the ``last-update`` watermark.

The pipeline only depends on the ``SummaryStore`` protocol. ``MemoryStore``
backs tests and one-off runs; ``JsonFileStore`` keeps the same tree as a
single JSON document on disk::

    {"last-update": "2024-01-07",
     "earthquakes": {"2024-01-07": {"<id>": {...summary...}}}}
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

WATERMARK_KEY = "last-update"
PARTITIONS_KEY = "earthquakes"


class StoreError(RuntimeError):
    """A read or write against the store failed."""


class SummaryStore(Protocol):
    async def get_watermark(self) -> str | None: ...

    async def set_watermark(self, date: str) -> None: ...

    async def get_partition(self, date: str) -> dict[str, dict] | None: ...

    async def upsert_partition(self, date: str, summaries: dict[str, dict]) -> None: ...


class MemoryStore:
    """In-process store. Values are deep-copied in and out."""

    def __init__(self, watermark: str | None = None, partitions: dict[str, dict[str, dict]] | None = None):
        self.watermark = watermark
        self.partitions: dict[str, dict[str, dict]] = copy.deepcopy(partitions or {})

    async def get_watermark(self) -> str | None:
        return self.watermark

    async def set_watermark(self, date: str) -> None:
        self.watermark = date

    async def get_partition(self, date: str) -> dict[str, dict] | None:
        partition = self.partitions.get(date)
        return copy.deepcopy(partition) if partition is not None else None

    async def upsert_partition(self, date: str, summaries: dict[str, dict]) -> None:
        self.partitions.setdefault(date, {}).update(copy.deepcopy(summaries))


class JsonFileStore:
    """Whole-document JSON store on the local filesystem.

    Writes go to a temporary file that replaces the original, so a crash never
    leaves a half-written document. File access runs in worker threads so
    concurrent reads do not block the event loop; a lock serializes each
    read-modify-write.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (OSError, ValueError) as exc:
            raise StoreError(f"Cannot read store {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StoreError(f"Store {self.path} is not a JSON object")
        return data

    def _save(self, data: dict) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(data))
            os.replace(tmp, self.path)
        except OSError as exc:
            raise StoreError(f"Cannot write store {self.path}: {exc}") from exc

    def _read(self, key: str) -> Any:
        with self._lock:
            return self._load().get(key)

    def _write_watermark(self, date: str) -> None:
        with self._lock:
            data = self._load()
            data[WATERMARK_KEY] = date
            self._save(data)

    def _merge_partition(self, date: str, summaries: dict[str, dict]) -> None:
        with self._lock:
            data = self._load()
            data.setdefault(PARTITIONS_KEY, {}).setdefault(date, {}).update(summaries)
            self._save(data)

    async def get_watermark(self) -> str | None:
        value = await asyncio.to_thread(self._read, WATERMARK_KEY)
        return value if isinstance(value, str) else None

    async def set_watermark(self, date: str) -> None:
        await asyncio.to_thread(self._write_watermark, date)

    async def get_partition(self, date: str) -> dict[str, dict] | None:
        partitions = await asyncio.to_thread(self._read, PARTITIONS_KEY)
        partition = partitions.get(date) if isinstance(partitions, dict) else None
        return partition if isinstance(partition, dict) else None

    async def upsert_partition(self, date: str, summaries: dict[str, dict]) -> None:
        await asyncio.to_thread(self._merge_partition, date, summaries)
        logger.debug("Upserted %d summaries into %s", len(summaries), date)
