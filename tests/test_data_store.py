from __future__ import annotations

import pytest

from invoicing.data import InMemoryKeyValueStore, KeyValueStore, SqlKeyValueStore, create_sqlite_engine


def test_sql_store_round_trip(tmp_path) -> None:
    store = SqlKeyValueStore(create_sqlite_engine(str(tmp_path / "db" / "invoicing.db")))

    assert store.get("missing") is None
    assert store.get("missing", []) == []

    store.set("customers_central", [{"name": "Ταβέρνα Κρήτη", "vat": "111"}])
    store.set("invoice_sequence_central", 4)
    store.set("invoice_sequence_central", 5)

    assert store.get("customers_central") == [{"name": "Ταβέρνα Κρήτη", "vat": "111"}]
    assert store.get("invoice_sequence_central") == 5
    assert store.delete("invoice_sequence_central") is True
    assert store.delete("invoice_sequence_central") is False


def test_sql_store_survives_reopen(tmp_path) -> None:
    db_path = str(tmp_path / "invoicing.db")
    SqlKeyValueStore(create_sqlite_engine(db_path)).set("invoice_draft", {"branchId": "villa1"})

    reopened = SqlKeyValueStore(create_sqlite_engine(db_path))
    assert reopened.get("invoice_draft") == {"branchId": "villa1"}


def test_in_memory_store_copies_values() -> None:
    store = InMemoryKeyValueStore({"invoices_history": []})
    history = store.get("invoices_history")
    history.append({"id": "x"})

    assert store.get("invoices_history") == []
    assert store.keys() == ["invoices_history"]


def test_in_memory_store_rejects_non_json_values() -> None:
    with pytest.raises(TypeError):
        InMemoryKeyValueStore().set("bad", object())


def test_both_stores_satisfy_the_protocol(tmp_path) -> None:
    assert isinstance(InMemoryKeyValueStore(), KeyValueStore)
    assert isinstance(SqlKeyValueStore(create_sqlite_engine(str(tmp_path / "p.db"))), KeyValueStore)
