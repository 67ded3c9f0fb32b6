import json
import os
from contextlib import contextmanager
from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Protocol, runtime_checkable

from sqlalchemy import Column, Text
from sqlalchemy.engine import Engine
from sqlmodel import Field, Session, SQLModel, create_engine


FAILED_QUEUE_KEY = "aade_failed_queue"
HISTORY_KEY = "invoices_history"
TRASH_KEY = "invoices_trash"
DRAFT_KEY = "invoice_draft"


def customers_key(branch_id: str) -> str:
    return f"customers_{branch_id}"


def sequence_key(branch_id: str) -> str:
    return f"invoice_sequence_{branch_id}"


@runtime_checkable
class KeyValueStore(Protocol):
    """Durable per-key storage of JSON-compatible values."""

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> bool:
        ...


class InMemoryKeyValueStore(KeyValueStore):
    """Simple in-memory store backed by a dict. Values are copied in and out."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._items: Dict[str, Any] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._items:
            return default
        return deepcopy(self._items[key])

    def set(self, key: str, value: Any) -> None:
        # Round-trip through JSON so the in-memory store rejects what SQLite would.
        self._items[key] = json.loads(json.dumps(value, ensure_ascii=False))

    def delete(self, key: str) -> bool:
        if key in self._items:
            del self._items[key]
            return True
        return False

    def keys(self) -> list[str]:
        return list(self._items)


class StoredValue(SQLModel, table=True):
    __tablename__ = "stored_value"

    key: str = Field(primary_key=True)
    value_json: str = Field(default="null", sa_column=Column(Text))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def create_sqlite_engine(db_path: str) -> Engine:
    directory = os.path.dirname(db_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    engine = create_engine(f"sqlite:///{db_path}")
    SQLModel.metadata.create_all(engine)
    return engine


class SqlKeyValueStore(KeyValueStore):
    """Key-value store persisted in the ``stored_value`` table."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @contextmanager
    def _session(self) -> Iterator[Session]:
        with Session(self._engine) as session:
            yield session

    def get(self, key: str, default: Any = None) -> Any:
        with self._session() as session:
            row = session.get(StoredValue, key)
            if row is None:
                return default
            return json.loads(row.value_json)

    def set(self, key: str, value: Any) -> None:
        raw = json.dumps(value, ensure_ascii=False)
        with self._session() as session:
            row = session.get(StoredValue, key)
            if row is None:
                row = StoredValue(key=key, value_json=raw)
            else:
                row.value_json = raw
                row.updated_at = datetime.now(timezone.utc)
            session.add(row)
            session.commit()

    def delete(self, key: str) -> bool:
        with self._session() as session:
            row = session.get(StoredValue, key)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True
