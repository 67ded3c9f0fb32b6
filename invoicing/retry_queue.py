from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Callable

from invoicing.data import FAILED_QUEUE_KEY, KeyValueStore
from invoicing.errors import EntryNotFoundError
from invoicing.models import FailedQueueEntry, Payload


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FailedQueue:
    """Ordered list of failed submissions waiting for a manual retry.

    No deduplication: every failed attempt gets its own entry. Writes hold an
    instance lock across the load and save of the whole list.
    """

    def __init__(self, store: KeyValueStore, clock: Callable[[], datetime] = _utcnow) -> None:
        self._store = store
        self._clock = clock
        self._lock = threading.Lock()

    def _load(self) -> list[FailedQueueEntry]:
        raw = self._store.get(FAILED_QUEUE_KEY, [])
        if not isinstance(raw, list):
            logger.warning("queue.corrupt_list")
            return []
        return [FailedQueueEntry.model_validate(item) for item in raw]

    def _save(self, entries: list[FailedQueueEntry]) -> None:
        self._store.set(FAILED_QUEUE_KEY, [entry.to_json_dict() for entry in entries])

    def __len__(self) -> int:
        return len(self._load())

    def entries(self) -> list[FailedQueueEntry]:
        return self._load()

    def get(self, entry_id: str) -> FailedQueueEntry:
        for entry in self._load():
            if entry.id == entry_id:
                return entry
        raise EntryNotFoundError("queue", entry_id)

    def enqueue(self, payload: Payload, error: str) -> FailedQueueEntry:
        entry = FailedQueueEntry(
            id=uuid.uuid4().hex,
            timestamp=self._clock(),
            payload=payload,
            error=error or "Unknown error",
        )
        with self._lock:
            entries = self._load()
            entries.append(entry)
            self._save(entries)
        logger.info(
            "queue.enqueued",
            extra={"entry_id": entry.id, "invoice_number": payload.header.aa, "branch_id": payload.meta.branch_id},
        )
        return entry

    def record_error(self, entry_id: str, error: str) -> FailedQueueEntry:
        with self._lock:
            entries = self._load()
            for idx, entry in enumerate(entries):
                if entry.id == entry_id:
                    entries[idx] = entry.model_copy(update={"error": error or entry.error})
                    self._save(entries)
                    return entries[idx]
        raise EntryNotFoundError("queue", entry_id)

    def remove(self, entry_id: str) -> FailedQueueEntry:
        with self._lock:
            entries = self._load()
            for idx, entry in enumerate(entries):
                if entry.id == entry_id:
                    del entries[idx]
                    self._save(entries)
                    break
            else:
                raise EntryNotFoundError("queue", entry_id)
        logger.info("queue.removed", extra={"entry_id": entry_id})
        return entry
