from __future__ import annotations

import logging
import threading
from bisect import bisect_right
from datetime import datetime, timezone
from typing import Any, Callable

from invoicing.data import HISTORY_KEY, TRASH_KEY, KeyValueStore
from invoicing.errors import EntryNotFoundError
from invoicing.models import HistoryEntry, HistoryStatus


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HistoryLedger:
    """Submission history plus its Trash.

    The active list is kept in timestamp order, oldest first. Deleting moves an
    entry into Trash with ``deleted_at`` set; restoring puts it back at its
    timestamp position.

    Every mutation reloads and rewrites the whole list under one lock, so
    writers sharing this instance never drop each other's entries.
    """

    def __init__(self, store: KeyValueStore, clock: Callable[[], datetime] = _utcnow) -> None:
        self._store = store
        self._clock = clock
        self._lock = threading.Lock()

    def _load(self, key: str) -> list[HistoryEntry]:
        raw = self._store.get(key, [])
        if not isinstance(raw, list):
            logger.warning("ledger.corrupt_list", extra={"key": key})
            return []
        return [HistoryEntry.model_validate(item) for item in raw]

    def _save(self, key: str, entries: list[HistoryEntry]) -> None:
        self._store.set(key, [entry.to_json_dict() for entry in entries])

    def entries(self) -> list[HistoryEntry]:
        return self._load(HISTORY_KEY)

    def trash(self) -> list[HistoryEntry]:
        return self._load(TRASH_KEY)

    def for_branch(self, branch_id: str) -> list[HistoryEntry]:
        return [entry for entry in self.entries() if entry.branch_id == branch_id]

    def get(self, entry_id: str) -> HistoryEntry:
        for entry in self.entries():
            if entry.id == entry_id:
                return entry
        raise EntryNotFoundError("history", entry_id)

    @staticmethod
    def _insert(entries: list[HistoryEntry], entry: HistoryEntry) -> None:
        stamps = [item.timestamp for item in entries]
        entries.insert(bisect_right(stamps, entry.timestamp), entry)

    def record(self, entry: HistoryEntry) -> HistoryEntry:
        with self._lock:
            entries = self.entries()
            if any(item.id == entry.id for item in entries):
                raise ValueError(f"History entry '{entry.id}' already exists")
            self._insert(entries, entry)
            self._save(HISTORY_KEY, entries)
        logger.info(
            "ledger.recorded",
            extra={"entry_id": entry.id, "invoice_number": entry.invoice_number, "status": entry.status.value},
        )
        return entry

    def transition(self, entry_id: str, status: HistoryStatus, **changes: Any) -> HistoryEntry:
        with self._lock:
            entries = self.entries()
            for idx, entry in enumerate(entries):
                if entry.id == entry_id:
                    updated = entry.model_copy(update={"status": status, **changes})
                    entries[idx] = updated
                    self._save(HISTORY_KEY, entries)
                    break
            else:
                raise EntryNotFoundError("history", entry_id)
        logger.info(
            "ledger.status_changed",
            extra={"entry_id": entry_id, "from": entry.status.value, "to": status.value},
        )
        return updated

    def move_to_trash(self, entry_id: str) -> HistoryEntry:
        with self._lock:
            entries = self.entries()
            for idx, entry in enumerate(entries):
                if entry.id == entry_id:
                    del entries[idx]
                    trashed = entry.model_copy(update={"deleted_at": self._clock()})
                    trash = self.trash()
                    trash.insert(0, trashed)
                    self._save(HISTORY_KEY, entries)
                    self._save(TRASH_KEY, trash)
                    break
            else:
                raise EntryNotFoundError("history", entry_id)
        logger.info("ledger.trashed", extra={"entry_id": entry_id})
        return trashed

    def restore(self, entry_id: str) -> HistoryEntry:
        with self._lock:
            trash = self.trash()
            for idx, entry in enumerate(trash):
                if entry.id == entry_id:
                    del trash[idx]
                    restored = entry.model_copy(update={"deleted_at": None})
                    entries = self.entries()
                    self._insert(entries, restored)
                    self._save(HISTORY_KEY, entries)
                    self._save(TRASH_KEY, trash)
                    break
            else:
                raise EntryNotFoundError("trash", entry_id)
        logger.info("ledger.restored", extra={"entry_id": entry_id})
        return restored

    def purge(self, entry_id: str) -> HistoryEntry:
        with self._lock:
            trash = self.trash()
            for idx, entry in enumerate(trash):
                if entry.id == entry_id:
                    del trash[idx]
                    self._save(TRASH_KEY, trash)
                    break
            else:
                raise EntryNotFoundError("trash", entry_id)
        logger.info("ledger.purged", extra={"entry_id": entry_id})
        return entry

    def empty_trash(self) -> int:
        with self._lock:
            count = len(self.trash())
            self._save(TRASH_KEY, [])
        return count
